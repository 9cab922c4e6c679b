"""
OrderDesk submission client.

Posts each ShipmentRecord as JSON to the single-order-ship endpoint
(ORDERDESK_URL). Shipments are submitted one at a time in order; the first
failure stops the batch and nothing from the earlier calls is returned.

Error mapping:
  non-2xx response       -> UpstreamRejectionError (400), with the status
                            line, the body sent and the upstream body
  network / timeout      -> UpstreamTransportError (500)
  2xx with non-JSON body -> UpstreamTransportError (500)

No retries happen here.
"""

import json
import logging
from typing import Optional

import httpx

from app.config import ORDERDESK_TIMEOUT, ORDERDESK_URL
from app.errors import UpstreamRejectionError, UpstreamTransportError
from app.models.shipment import ShipmentRecord

logger = logging.getLogger(__name__)

_HEADERS = {"Content-Type": "application/json"}


def _parse_error_body(text: str):
    """Return the upstream error body as parsed JSON, or wrapped as {"raw": text}."""
    try:
        return json.loads(text)
    except ValueError:
        return {"raw": text}


async def submit_shipment(client: httpx.AsyncClient, shipment: ShipmentRecord):
    """
    POST one shipment and return OrderDesk's parsed JSON response.

    Raises:
        UpstreamRejectionError: OrderDesk returned a non-2xx status.
        UpstreamTransportError: the call failed or the reply was not JSON.
    """
    payload = shipment.model_dump()
    try:
        response = await client.post(ORDERDESK_URL, json=payload, headers=_HEADERS)
    except httpx.RequestError as exc:
        logger.error(f"OrderDesk request failed for {shipment.tracking_number!r}: {exc}")
        raise UpstreamTransportError(
            "Failed to reach fulfillment service",
            details={
                "tracking_number": shipment.tracking_number,
                "error": f"{type(exc).__name__}: {exc}",
            },
        ) from exc

    if not response.is_success:
        raise UpstreamRejectionError(
            "Failed to submit shipment",
            details={
                "tracking_number": shipment.tracking_number,
                "status": f"{response.status_code} {response.reason_phrase}",
                "requestBody": payload,
                "serverResponse": _parse_error_body(response.text),
            },
        )

    try:
        return response.json()
    except ValueError as exc:
        raise UpstreamTransportError(
            "Invalid response from fulfillment service",
            details={
                "tracking_number": shipment.tracking_number,
                "status": f"{response.status_code} {response.reason_phrase}",
                "serverResponse": {"raw": response.text},
            },
        ) from exc


async def submit_shipments(
    shipments: list[ShipmentRecord],
    client: Optional[httpx.AsyncClient] = None,
) -> list[dict]:
    """
    Submit shipments sequentially, stopping at the first failure.

    Returns [{"tracking_number": ..., "response": ...}] in submission order
    once every shipment has been accepted.

    A client is created (and closed) per call unless one is passed in.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=ORDERDESK_TIMEOUT) as owned_client:
            return await submit_shipments(shipments, client=owned_client)

    results: list[dict] = []
    for shipment in shipments:
        response = await submit_shipment(client, shipment)
        results.append({"tracking_number": shipment.tracking_number, "response": response})
    return results
