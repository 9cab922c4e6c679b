"""
Pydantic models for the shipment intake pipeline.

Models:
  ParsedShippingMethod  — carrier code + normalized method split from one string
  LineItem              — one {code, quantity} pair marked as shipped
  ShipmentRecord        — canonical payload POSTed to OrderDesk, one per tracking number
  ShipmentSubmission    — one OrderDesk response, keyed by tracking number
  ShipmentIntakeResponse — success body returned by POST /
  ErrorResponse         — failure body returned by the exception handlers
"""

from typing import Any, Optional, Union
from pydantic import BaseModel


class ParsedShippingMethod(BaseModel):
    """Carrier code and shipment method parsed from e.g. "UPS GRND"."""

    carrier_code: Optional[str] = None
    shipment_method: Optional[str] = None


class LineItem(BaseModel):
    """A quantity of one SKU / order line to mark as shipped."""

    code: Union[int, float, str]
    quantity: Union[int, float]


class ShipmentRecord(BaseModel):
    """
    One shipment to submit downstream.

    Built and mutated only by the grouping fold; later attachments for the
    same tracking number backfill null fields and append order_items.
    """

    tracking_number: str
    source_id: Optional[Union[int, float, str]] = None
    carrier_code: Optional[str] = None
    shipment_method: Optional[str] = None
    order_items: list[LineItem] = []


class ShipmentSubmission(BaseModel):
    tracking_number: str
    response: Any = None


class ShipmentIntakeResponse(BaseModel):
    success: bool = True
    responses: list[ShipmentSubmission]
    request_id: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    request_id: Optional[str] = None
    details: Optional[dict] = None
