"""
Time utilities for spreadarb.

All internal timestamps use UTC, converted for display.
"""

from datetime import datetime, timezone
from typing import Optional

import pytz

from spreadarb.core.config import get_settings


def get_timezone() -> pytz.BaseTzInfo:
    """Get configured display timezone."""
    settings = get_settings()
    return pytz.timezone(settings.timezone)


def now_utc() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def to_local(dt: datetime) -> datetime:
    """Convert datetime to configured timezone."""
    tz = get_timezone()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz)


def age_seconds(dt: datetime, now: Optional[datetime] = None) -> float:
    """Seconds elapsed since `dt` (naive datetimes are taken as UTC)."""
    if now is None:
        now = now_utc()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return (now - dt).total_seconds()


def format_timestamp(dt: Optional[datetime] = None, fmt: str = "iso") -> str:
    """
    Format datetime to string.

    Args:
        dt: Datetime to format. Uses current UTC time if not provided.
        fmt: Format type - 'iso', 'display', 'date', 'time', 'log'

    Returns:
        Formatted string
    """
    if dt is None:
        dt = now_utc()

    formats = {
        "iso": "%Y-%m-%dT%H:%M:%SZ",
        "display": "%Y-%m-%d %H:%M:%S",
        "date": "%Y-%m-%d",
        "time": "%H:%M:%S",
        "log": "%Y-%m-%d %H:%M:%S.%f",
    }

    return dt.strftime(formats.get(fmt, fmt))
