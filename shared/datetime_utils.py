"""
Date/time helpers (framework-agnostic).

MongoDB stores naive UTC datetimes; clients created without ``tz_aware=True``
hand them back naive. Everything in the verification flow compares aware UTC
datetimes, so values read from storage go through ``ensure_utc`` first.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as an aware UTC datetime.

    Naive datetimes are assumed to be UTC (MongoDB's storage convention).
    ``None`` passes through unchanged.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
