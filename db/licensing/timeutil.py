"""Timestamp helpers shared by the licensing components."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by some database drivers) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string or epoch-milliseconds number into an aware datetime.

    Returns None for anything unparsable. Only ISO-8601 strings are
    understood; free-form dates such as "March 15, 2024" yield None, which
    callers checking an expiry treat as "no expiry".
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        try:
            return as_utc(datetime.fromisoformat(value.strip().replace('Z', '+00:00')))
        except ValueError:
            logger.debug(f"Unparsable timestamp: {value!r}")
            return None
    return None


def isoformat_z(value: datetime) -> str:
    """Render an aware datetime as ISO-8601 with millisecond precision and a Z suffix."""
    return as_utc(value).isoformat(timespec='milliseconds').replace('+00:00', 'Z')
