"""
Shipment grouping and request validation.

Folds the raw attachments of one request into one ShipmentRecord per
tracking number:

  - first attachment for a tracking number creates the record
  - later attachments only fill fields that are still None
    (source_id, carrier_code and shipment_method independently)
  - every attachment appends its line items

Records come back in the order their tracking numbers were first seen.
"""

import logging
from typing import Any, Optional

from app.errors import BadRequestError
from app.models.shipment import ShipmentRecord
from app.services.normalizer import (
    build_order_items,
    resolve_shipping_method,
    resolve_source_id,
)

logger = logging.getLogger(__name__)


def _tracking_number(attachment: dict) -> Optional[str]:
    value = attachment.get("tracking_number")
    if not value or isinstance(value, (bool, dict, list)):
        return None
    return str(value)


def build_grouped_shipments(attachments: list) -> list[ShipmentRecord]:
    """
    Group attachments by tracking number.

    Attachments that are not dicts or have no tracking number are skipped.

    Note: carrier_code and shipment_method are backfilled separately, so a
    merged record can pair a carrier from one attachment with a method from
    another.
    """
    shipments: dict[str, ShipmentRecord] = {}

    for attachment in attachments:
        if not isinstance(attachment, dict):
            continue
        tracking_number = _tracking_number(attachment)
        if tracking_number is None:
            continue

        method = resolve_shipping_method(attachment)
        record = shipments.get(tracking_number)
        if record is None:
            record = ShipmentRecord(
                tracking_number=tracking_number,
                source_id=resolve_source_id(attachment),
                carrier_code=method.carrier_code,
                shipment_method=method.shipment_method,
            )
            shipments[tracking_number] = record
        else:
            if record.source_id is None:
                record.source_id = resolve_source_id(attachment)
            if record.carrier_code is None:
                record.carrier_code = method.carrier_code
            if record.shipment_method is None:
                record.shipment_method = method.shipment_method

        record.order_items.extend(build_order_items(attachment))

    return list(shipments.values())


# ---------------------------------------------------------------------------
# Validation gate
# ---------------------------------------------------------------------------

def coerce_attachments(body: Any) -> list:
    """
    Pull the attachment list out of a request body.

    ``mail_attachments`` may be a single record or a list of records; any
    other shape rejects the whole request.
    """
    attachments = body.get("mail_attachments") if isinstance(body, dict) else None
    if isinstance(attachments, list):
        return attachments
    if isinstance(attachments, dict):
        return [attachments]
    raise BadRequestError(
        "Invalid input: 'mail_attachments' must be an object or an array."
    )


def prepare_shipments(body: Any) -> list[ShipmentRecord]:
    """
    Validate a request body and return its grouped shipments.

    Raises:
        BadRequestError: mail_attachments is missing/malformed, or no
            attachment carries a tracking number.
    """
    attachments = coerce_attachments(body)
    shipments = build_grouped_shipments(attachments)
    if not shipments:
        raise BadRequestError("Invalid attachment: Missing 'tracking_number'.")

    logger.debug(
        "prepare_shipments: %d attachment(s) -> %d shipment(s)",
        len(attachments),
        len(shipments),
    )
    return shipments
