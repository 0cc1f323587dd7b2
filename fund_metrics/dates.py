"""
dates.py — Calendar-date parsing for ledger entries.

Ledger dates are plain YYYY-MM-DD strings. They are always turned into
naive ``datetime.date`` values (never timestamps) so that day-of-month,
ordering and day counts cannot drift with the host timezone or DST.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional, Union

DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")

DateLike = Union[str, date]


def is_valid_date(value: object) -> bool:
    """
    True iff ``value`` is a ``YYYY-MM-DD`` string naming a real calendar day.

    ``"2020-02-30"`` and ``"2021-13-01"`` are rejected, as is anything that
    is not a string.
    """
    return parse_date(value) is not None


def parse_date(value: object) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` string, returning None when it is not valid."""
    if not isinstance(value, str) or not DATE_PATTERN.fullmatch(value):
        return None
    year, month, day = (int(part) for part in value.split("-"))
    try:
        parsed = date(year, month, day)
    except ValueError:
        return None
    # Round-trip check: the constructed day must be the one written down.
    if (parsed.year, parsed.month, parsed.day) != (year, month, day):
        return None
    return parsed


def to_cutoff(cutoff: Optional[DateLike]) -> Optional[date]:
    """
    Normalise an as-of cutoff argument.

    Accepts None (no limit), a ``date``/``datetime`` or a ``YYYY-MM-DD``
    string. Raises ValueError for a string that is not a valid date, since
    silently dropping a cutoff would change every figure computed with it.
    """
    if cutoff is None:
        return None
    if isinstance(cutoff, datetime):
        return cutoff.date()
    if isinstance(cutoff, date):
        return cutoff
    parsed = parse_date(cutoff)
    if parsed is None:
        raise ValueError(f"Invalid cutoff date: {cutoff!r}")
    return parsed


def cutoff_key(cutoff: Optional[DateLike]) -> str:
    """Cache key fragment for a cutoff: its ISO date, or ``"none"``."""
    parsed = to_cutoff(cutoff)
    return parsed.isoformat() if parsed is not None else "none"


def years_between(start: date, end: date) -> float:
    """Elapsed time in years of 365.25 days."""
    return (end - start).days / 365.25
