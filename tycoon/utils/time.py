"""Time related helpers."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Return the current UTC time as a naive ``datetime``.

    SQLite does not keep timezone info in ``DateTime`` columns, so values read
    back are naive. Keeping every stored timestamp naive UTC keeps comparisons
    and subtraction consistent.
    """

    return datetime.now(timezone.utc).replace(tzinfo=None)


def ensure_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize datetime to naive UTC representation."""

    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def whole_months_between(start: Optional[datetime], end: datetime) -> int:
    """Return the number of complete calendar months from ``start`` to ``end``.

    A month counts once the same day-of-month and time has been reached, so
    Jan 31 to Feb 28 is zero months. Negative spans return zero.
    """

    start = ensure_naive(start)
    end = ensure_naive(end)
    if start is None or end <= start:
        return 0
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if (end.day, end.time()) < (start.day, start.time()):
        months -= 1
    return max(0, months)
