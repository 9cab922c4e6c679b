"""
Shipment Intake API
FastAPI application that turns mail-parsed shipment attachments into
OrderDesk single-order-ship requests.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.config import ORDERDESK_URL, PORT
from app.errors import ShipmentIntakeError
from app.logging_config import configure_logging, log_event
from app.models.shipment import ErrorResponse
from app.routers import shipments

configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log where shipments are forwarded to on startup."""
    logger.info("Shipment Intake API forwarding to %s", ORDERDESK_URL)
    yield


app = FastAPI(
    title="Shipment Intake API",
    description="Normalizes shipped mail attachments and forwards them to OrderDesk",
    version="0.1.0",
    lifespan=lifespan,
)


def _error_response(status_code: int, message: str, request_id, details) -> JSONResponse:
    body = ErrorResponse(message=message, request_id=request_id, details=details)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


@app.exception_handler(ShipmentIntakeError)
async def shipment_intake_error_handler(
    request: Request, exc: ShipmentIntakeError
) -> JSONResponse:
    """Render ShipmentIntakeError subclasses with their own status and details."""
    request_id = getattr(request.state, "request_id", None)
    log_event(
        logger,
        logging.ERROR,
        "request.error",
        request_id=request_id,
        status=exc.status_code,
        message=exc.message,
        details=exc.details,
    )
    return _error_response(exc.status_code, exc.message, request_id, exc.details)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """
    Attach a request ID, response timing, and a completion log.

    Exceptions that escape the route without a dedicated handler are turned
    into a generic 500 here so the response still carries X-Request-Id.
    """
    start = time.monotonic()
    request_id = uuid.uuid4().hex
    request.state.request_id = request_id

    try:
        response = await call_next(request)
    except Exception as exc:
        logger.exception(f"Unhandled error for request {request_id}: {exc}")
        log_event(
            logger,
            logging.ERROR,
            "request.error",
            request_id=request_id,
            status=500,
            message=str(exc),
        )
        response = _error_response(500, "An unexpected error occurred", request_id, None)

    response.headers["X-Request-Id"] = request_id
    log_event(
        logger,
        logging.INFO,
        "request.complete",
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=round((time.monotonic() - start) * 1000),
    )
    return response


# Include routers
app.include_router(shipments.router, tags=["shipments"])


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=PORT)
