"""Datetime helpers: everything is stored and compared as naive UTC."""

from datetime import datetime, timezone
from typing import Optional


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def format_duration(seconds: int) -> str:
    """'12m 5s' style duration, or '45s' under a minute"""
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s" if minutes > 0 else f"{secs}s"
