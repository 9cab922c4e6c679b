"""
Normalization service for raw mail attachments.

Converts one loosely-structured attachment record (as produced by the
upstream mail parser) into the pieces of a ShipmentRecord:

  - source id          from one of several legacy order-number fields
  - carrier / method   split from a combined string like "UPS GRND"
  - order items        from an explicit order_items list or a flat legacy record

Everything here is pure and never raises on bad input: unknown or malformed
values resolve to None (or an empty item list) and the grouping layer decides
what is fatal.
"""

import logging
import math
from typing import Any, Iterable, Optional, Union

from app.models.shipment import LineItem, ParsedShippingMethod

logger = logging.getLogger(__name__)

# Field aliases, highest priority first
_SOURCE_ID_KEYS = ("brightstores_order_id", "jcharles_order_number", "customer_po")
_SHIPPING_METHOD_KEYS = ("brightstores_shipping_method", "ship_via_description")
_ITEM_CODE_KEYS = ("code", "sku")
_ITEM_QUANTITY_KEYS = ("quantity", "qty")
_FLAT_CODE_KEYS = ("order_items_code", "sku")
_FLAT_QUANTITY_KEYS = ("shipment_quantity", "quantity")

# Carrier method abbreviation -> label expected by OrderDesk
_SHIPMENT_METHOD_MAP = {
    "GRND": "Ground",
    "RES": "Residential",
    "3DAY": "3-Day Select",
    "2DAY": "2-Day Air",
    "1DAY": "Next Day Air",
    "STD": "Standard",
    "EXP": "Express",
}

Scalar = Union[int, float, str]


def first_present(record: dict, keys: Iterable[str]) -> Any:
    """
    Return the first truthy value among ``keys`` in ``record``, else None.

    Empty strings, zero, False and empty containers count as missing, the same
    way the upstream mail parser leaves unused columns.
    """
    for key in keys:
        value = record.get(key)
        if value:
            return value
    return None


def _as_scalar(value: Any) -> Optional[Scalar]:
    """Keep strings and real numbers; anything else (dicts, lists, bools) is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, str)):
        return value
    return None


def parse_quantity(value: Any) -> Optional[Union[int, float]]:
    """
    Parse a shipped quantity.

    Examples:
        3        -> 3
        "2"      -> 2
        "1.5"    -> 1.5
        0        -> None
        "-1"     -> None
        "abc"    -> None
        "inf"    -> None
        10**400  -> None
    """
    if isinstance(value, (int, float)):
        try:
            quantity = float(value)
        except OverflowError:
            logger.debug("parse_quantity: out of range %r", value)
            return None
    elif isinstance(value, str):
        try:
            quantity = float(value.strip())
        except (ValueError, OverflowError):
            logger.debug("parse_quantity: not a number %r", value)
            return None
    else:
        return None

    if not math.isfinite(quantity) or quantity <= 0:
        return None
    return int(quantity) if quantity.is_integer() else quantity


# ---------------------------------------------------------------------------
# Field resolver
# ---------------------------------------------------------------------------

def resolve_source_id(attachment: dict) -> Optional[Scalar]:
    """Return the attachment's order identifier, or None if no alias is set."""
    return _as_scalar(first_present(attachment, _SOURCE_ID_KEYS))


def normalize_shipment_method(label: Optional[str]) -> Optional[str]:
    """
    Map a carrier method abbreviation to its OrderDesk label.

    Looks the label up as given, then uppercased; unknown labels pass through.

    Examples:
        "GRND"          -> "Ground"
        "2day"          -> "2-Day Air"
        "Priority Mail" -> "Priority Mail"
        ""              -> None
    """
    if not label:
        return None
    return (
        _SHIPMENT_METHOD_MAP.get(label)
        or _SHIPMENT_METHOD_MAP.get(label.upper())
        or label
    )


def parse_shipping_method(raw: Any) -> ParsedShippingMethod:
    """
    Split a combined "<carrier> <method>" string.

    The first whitespace-separated token is the carrier only when at least
    two tokens are present; the rest is the method label.

    Examples:
        "UPS GRND"        -> carrier "UPS",   method "Ground"
        "FEDEX 2 Day"     -> carrier "FEDEX", method "2 Day"
        "RES"             -> carrier None,    method "Residential"
        "   " / None      -> carrier None,    method None
    """
    if not raw:
        return ParsedShippingMethod()

    parts = str(raw).split()
    if not parts:
        return ParsedShippingMethod()

    carrier_code = parts.pop(0) if len(parts) > 1 else None
    return ParsedShippingMethod(
        carrier_code=carrier_code,
        shipment_method=normalize_shipment_method(" ".join(parts)),
    )


def resolve_shipping_method(attachment: dict) -> ParsedShippingMethod:
    """
    Resolve carrier and method for one attachment.

    Prefers the combined method string (brightstores_shipping_method, then
    ship_via_description). Attachments without either are checked for
    already-split carrier_code / shipment_method fields.
    """
    source = first_present(attachment, _SHIPPING_METHOD_KEYS)
    if source:
        return parse_shipping_method(source)

    carrier_code = str(_as_scalar(attachment.get("carrier_code")) or "").strip()
    shipment_method = str(_as_scalar(attachment.get("shipment_method")) or "").strip()
    return ParsedShippingMethod(
        carrier_code=carrier_code or None,
        shipment_method=normalize_shipment_method(shipment_method),
    )


# ---------------------------------------------------------------------------
# Line item builder
# ---------------------------------------------------------------------------

def _make_line_item(code: Any, quantity: Any) -> Optional[LineItem]:
    code = _as_scalar(code)
    parsed_quantity = parse_quantity(quantity)
    if not code or parsed_quantity is None:
        return None
    return LineItem(code=code, quantity=parsed_quantity)


def build_order_items(attachment: Any) -> list[LineItem]:
    """
    Build the OrderDesk line items for one attachment.

    - ``order_items`` is a list: each dict element becomes one item
      (code/sku + quantity/qty); other elements and invalid items are dropped.
    - otherwise: the attachment itself is a single legacy item
      (order_items_code/sku + shipment_quantity/quantity).

    Always returns a list, possibly empty.
    """
    if not isinstance(attachment, dict):
        return []

    raw_items = attachment.get("order_items")
    if isinstance(raw_items, list):
        items: list[LineItem] = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                continue
            item = _make_line_item(
                first_present(raw, _ITEM_CODE_KEYS),
                first_present(raw, _ITEM_QUANTITY_KEYS),
            )
            if item is not None:
                items.append(item)
        dropped = len(raw_items) - len(items)
        if dropped:
            logger.debug("build_order_items: dropped %d invalid item(s)", dropped)
        return items

    item = _make_line_item(
        first_present(attachment, _FLAT_CODE_KEYS),
        first_present(attachment, _FLAT_QUANTITY_KEYS),
    )
    return [item] if item is not None else []
