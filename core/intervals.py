"""Half-open date interval helpers.

Every range in the rental engine is ``[start, end)``: the end day is the next
customer's pick-up day and is not occupied, so a drop-off and a pick-up on the
same day never collide. ``overlaps`` is the only interval comparison in the
project; ``overlap_q`` is the same predicate expressed for the ORM.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Iterator

from django.db.models import Q


def overlaps(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Return True when ``[a_start, a_end)`` and ``[b_start, b_end)`` intersect."""

    return a_start < b_end and a_end > b_start


def overlap_q(start: date, end: date, *, start_field: str = 'start_date', end_field: str = 'end_date') -> Q:
    """ORM filter matching rows whose ``[start_field, end_field)`` overlaps ``[start, end)``."""

    return Q(**{f'{start_field}__lt': end, f'{end_field}__gt': start})


def daterange(start_date: date, end_date: date) -> Iterator[date]:
    """Yield dates from start_date to end_date (exclusive)."""

    current = start_date
    while current < end_date:
        yield current
        current += timedelta(days=1)


def whole_days_between(start: date | datetime, end: date | datetime) -> int:
    """Number of rental days between two points, rounding partial days up."""

    if isinstance(start, datetime) != isinstance(end, datetime):
        start = start.date() if isinstance(start, datetime) else start
        end = end.date() if isinstance(end, datetime) else end
    delta = end - start
    if delta.seconds or delta.microseconds:
        return math.ceil(delta.total_seconds() / 86400)
    return delta.days
