# File: utils/dt_utils.py
"""Date and time utilities for the pellet progression engine.

Pure Python date/time functions with no engine dependencies.
Uses standard library datetime plus dateutil for ISO-8601 parsing.

Persistence collaborators hand timestamps over in several shapes: ISO strings
(with or without offset, "Z" suffix included), epoch milliseconds (the mobile
client's native clock value) and datetime objects. Everything is normalized to
timezone-aware UTC before comparison.

Functions:
    - dt_now_utc: Current datetime in UTC
    - dt_now_iso: Current datetime as ISO string
    - as_utc: Convert a datetime to UTC (naive assumed UTC)
    - dt_parse: Normalize str/int/float/datetime inputs to UTC datetime
    - dt_window_start: Start of a trailing window of N days
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
import logging

from dateutil import parser as dt_parser

# Module-level logger (no engine dependency)
_LOGGER = logging.getLogger(__name__)

# Values at or above this are treated as epoch milliseconds, below as seconds
EPOCH_MILLISECONDS_THRESHOLD = 10**11


# ==============================================================================
# Current Time
# ==============================================================================


def dt_now_utc() -> datetime:
    """Return the current datetime in UTC (timezone-aware).

    Returns:
        Current UTC datetime.
    """
    return datetime.now(UTC)


def dt_now_iso() -> str:
    """Return the current UTC datetime as an ISO string."""
    return dt_now_utc().isoformat()


# ==============================================================================
# Normalization
# ==============================================================================


def as_utc(dt_obj: datetime) -> datetime:
    """Convert a datetime to UTC timezone.

    Args:
        dt_obj: Datetime object; naive values are assumed to already be UTC

    Returns:
        Datetime in UTC timezone
    """
    if dt_obj.tzinfo is None:
        return dt_obj.replace(tzinfo=UTC)
    return dt_obj.astimezone(UTC)


def dt_parse(dt_input: str | int | float | datetime | None) -> datetime | None:
    """Normalize various timestamp formats to a UTC datetime.

    Args:
        dt_input: ISO string, epoch milliseconds/seconds, datetime, or None

    Returns:
        UTC-aware datetime, or None if the input could not be parsed.

    Examples:
        dt_parse("2026-01-18T12:30:00Z") → datetime(2026, 1, 18, 12, 30, tzinfo=UTC)
        dt_parse(1768739400000) → datetime(2026, 1, 18, 12, 30, tzinfo=UTC)
    """
    if dt_input is None or isinstance(dt_input, bool):
        return None

    if isinstance(dt_input, datetime):
        return as_utc(dt_input)

    if isinstance(dt_input, (int, float)):
        seconds = (
            dt_input / 1000 if abs(dt_input) >= EPOCH_MILLISECONDS_THRESHOLD else dt_input
        )
        try:
            return datetime.fromtimestamp(seconds, UTC)
        except (OverflowError, OSError, ValueError):
            _LOGGER.warning("dt_parse: Epoch value out of range: %s", dt_input)
            return None

    if isinstance(dt_input, str):
        if not dt_input.strip():
            return None
        try:
            return as_utc(dt_parser.isoparse(dt_input.strip()))
        except (ValueError, OverflowError):
            _LOGGER.warning("dt_parse: Unparseable timestamp: %s", dt_input)
            return None

    _LOGGER.warning("dt_parse: Unsupported timestamp type: %s", type(dt_input))
    return None


# ==============================================================================
# Windows
# ==============================================================================


def dt_window_start(now: datetime, days: int) -> datetime:
    """Return the start of a trailing window of `days` days ending at `now`.

    Args:
        now: Window end (converted to UTC)
        days: Window length in days

    Returns:
        UTC datetime `days` days before `now`
    """
    return as_utc(now) - timedelta(days=days)
