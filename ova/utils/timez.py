# FILE: ova/utils/timez.py
from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """
    Returns a *naive* datetime in UTC.
    DateTime columns are naive, so every timestamp we store or compare goes
    through here.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(d: datetime | None) -> datetime | None:
    if d is None:
        return None
    if d.tzinfo is not None:
        d = d.astimezone(timezone.utc).replace(tzinfo=None)
    return d
