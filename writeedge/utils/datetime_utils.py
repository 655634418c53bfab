"""Datetime utility functions for consistent timezone handling."""

from datetime import datetime, timedelta, timezone


def get_current_utc_datetime() -> datetime:
    """
    Get current datetime in UTC timezone.

    Returns:
        datetime: Current UTC datetime with timezone info

    Example:
        >>> now = get_current_utc_datetime()
        >>> now.tzinfo
        datetime.timezone.utc
    """
    return datetime.now(timezone.utc)


def utc_after(seconds: float) -> datetime:
    """Return the UTC datetime `seconds` from now (negative values look back)."""
    return get_current_utc_datetime() + timedelta(seconds=seconds)
