"""
Logging setup and the event helper used across the app.

Log lines look like:

    2026-01-01 12:00:00,000 [INFO] app.routers.shipments: payload.prepared {"request_id": "...", ...}

Only flat key/value metadata goes into events; raw attachments are never logged.
"""

import json
import logging

from app.config import LOG_LEVEL


def configure_logging() -> None:
    """Configure logging to output to console."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def log_event(logger: logging.Logger, level: int, event: str, **meta) -> None:
    """Log ``event`` followed by its metadata rendered as compact JSON."""
    if not logger.isEnabledFor(level):
        return
    logger.log(level, "%s %s", event, json.dumps(meta, default=str, separators=(",", ":")))
