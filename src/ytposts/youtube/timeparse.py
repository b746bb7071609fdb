"""Relative time labels ("3 days ago") to absolute timestamps.

Labels are lossy: months count as 30 days and years as 365, so the result
is not accurate below a day for older posts.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

_UNITS: dict[str, timedelta] = {
    "second": timedelta(seconds=1),
    "minute": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
    "month": timedelta(days=30),
    "year": timedelta(days=365),
}

_LABEL_RE = re.compile(r"(\d+)\s*(second|minute|hour|day|week|month|year)s?\b", re.IGNORECASE)


def normalize_published_time(label: str | None, *, now: datetime | None = None) -> datetime:
    """Convert a relative label to an aware UTC datetime.

    A missing or unparseable label yields *now*; this is the normal answer
    for "just posted" too, so callers cannot tell the two apart.
    """
    now = now or datetime.now(UTC)
    if not label:
        return now

    match = _LABEL_RE.search(label)
    if match is None:
        return now

    amount = int(match.group(1))
    unit = _UNITS[match.group(2).lower()]
    return now - amount * unit
