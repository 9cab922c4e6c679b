"""
Typed exceptions for the shipment intake API.

Every error carries the HTTP status it maps to and optional structured
details. The exception handler in app.main serializes them as:

    {"success": false, "message": ..., "request_id": ..., "details": ...}

Usage:
    # In service layer
    raise BadRequestError("Invalid attachment: Missing 'tracking_number'.")

Per-attachment and per-item problems never raise; they are dropped by the
normalizer. Only batch-level and upstream failures end up here.
"""

from typing import Optional


class ShipmentIntakeError(Exception):
    """Base exception for all intake errors. Maps to HTTP 500 by default."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class BadRequestError(ShipmentIntakeError):
    """Malformed request body or no usable tracking number. Maps to HTTP 400."""

    status_code = 400


class UpstreamRejectionError(ShipmentIntakeError):
    """OrderDesk answered with a non-2xx status. Maps to HTTP 400."""

    status_code = 400


class UpstreamTransportError(ShipmentIntakeError):
    """OrderDesk could not be reached or sent back garbage. Maps to HTTP 500."""

    status_code = 500
