from __future__ import annotations

import re
from datetime import date

"""Date helpers shared by both vaccine parsing strategies."""

__all__ = [
    "DATE_TOKEN",
    "normalize_mm_dd_yyyy",
    "order_dates",
]

DATE_TOKEN = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")
_FULL_DATE = re.compile(r"^\s*(\d{1,2})/(\d{1,2})/(\d{4})\s*$")


def normalize_mm_dd_yyyy(value: str | None) -> str | None:
    """Convert ``M/D/YYYY`` to ``YYYY-MM-DD``.

    Returns None for anything that is not a real calendar date; never raises.

    >>> normalize_mm_dd_yyyy("2/20/2008")
    '2008-02-20'
    >>> normalize_mm_dd_yyyy("13/40/2008") is None
    True
    """
    if not isinstance(value, str):
        return None
    m = _FULL_DATE.match(value)
    if not m:
        return None
    month, day, year = (int(g) for g in m.groups())
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def order_dates(first: str, second: str | None) -> tuple[str, str | None]:
    """Return (earlier, later) for two ISO dates; second may be missing."""
    if second is None or first <= second:
        return first, second
    return second, first
