"""
Shipment intake router.

Receives shipment notifications from the mail-parsing source and forwards
one OrderDesk single-order-ship request per tracking number.

Endpoints:
  POST /    — body {"mail_attachments": <record> | [<record>, ...]}

Errors are raised as ShipmentIntakeError subclasses and rendered by the
exception handlers in app.main.
"""

import logging

from fastapi import APIRouter, Request

from app.errors import BadRequestError
from app.logging_config import log_event
from app.models.shipment import ShipmentIntakeResponse
from app.services.grouping import prepare_shipments
from app.services.orderdesk import submit_shipments

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_json_body(request: Request):
    try:
        return await request.json()
    except ValueError:
        raise BadRequestError("Invalid input: request body must be JSON.")


@router.post("/", response_model=ShipmentIntakeResponse)
async def receive_shipments(request: Request) -> dict:
    """
    Normalize the attachments in the request and submit each shipment.

    Shipments go out one at a time in first-seen order; a failure on any of
    them aborts the rest and the request fails as a whole.
    """
    request_id = getattr(request.state, "request_id", None)
    body = await _read_json_body(request)

    shipments = prepare_shipments(body)

    # Only the normalized fields are logged, never the raw attachments
    for shipment in shipments:
        log_event(
            logger,
            logging.INFO,
            "payload.prepared",
            request_id=request_id,
            source_id=shipment.source_id,
            tracking_number=shipment.tracking_number,
            carrier_code=shipment.carrier_code,
            shipment_method=shipment.shipment_method,
            order_items_count=len(shipment.order_items),
        )

    responses = await submit_shipments(shipments)

    log_event(
        logger,
        logging.INFO,
        "payload.sent",
        request_id=request_id,
        shipment_count=len(responses),
    )
    return {"success": True, "responses": responses, "request_id": request_id}
