"""
Calendar expansion of time restrictions.

Restriction ranges are expressed in a calendar unit (hours of a day, days of a
week starting on Sunday, months of a year) and may be fractional. They are
unfolded onto absolute millisecond timestamps covering a mask, in UTC.
"""

import calendar
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, List, Optional, Sequence

from allocation_models import Range, RestrictionCondition, TimeRestriction
from .intervals import complement, intersect, union

MapRangeFn = Callable[[Sequence[Range], Range], List[Range]]


def to_datetime(ts: float) -> datetime:
    return datetime.fromtimestamp(ts / 1000, tz=timezone.utc)


def to_timestamp(dt: datetime) -> float:
    return round(dt.timestamp() * 1000)


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(dt: datetime) -> datetime:
    """Weeks start on Sunday."""
    return start_of_day(dt) - timedelta(days=(dt.weekday() + 1) % 7)


def start_of_year(dt: datetime) -> datetime:
    return start_of_day(dt).replace(month=1, day=1)


def add_months(dt: datetime, months: float) -> datetime:
    """Add whole months, then the fraction as a share of the reached month's days."""
    whole = math.floor(months)
    month_index = dt.month - 1 + whole
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    shifted = dt.replace(year=year, month=month, day=day)
    days_in_month = calendar.monthrange(year, month)[1]
    return shifted + timedelta(days=(months - whole) * days_in_month)


def _next_day(dt: datetime) -> datetime:
    return dt + timedelta(days=1)


def _next_week(dt: datetime) -> datetime:
    return dt + timedelta(weeks=1)


def _next_year(dt: datetime) -> datetime:
    return dt.replace(year=dt.year + 1)


def _previous_year(dt: datetime) -> datetime:
    return dt.replace(year=dt.year - 1)


def _anchors(
    first: datetime,
    limit: datetime,
    step: Callable[[datetime], datetime],
) -> Iterator[datetime]:
    anchor = first
    while anchor < limit:
        yield anchor
        anchor = step(anchor)


def _unfold(
    restricts: Sequence[Range],
    mask: Range,
    first_anchor: datetime,
    step: Callable[[datetime], datetime],
    offset: Callable[[datetime, float], datetime],
) -> List[Range]:
    # The period before the mask is included so ranges spilling over midnight
    # (or the week/year edge) still reach into it.
    limit = _next_day(start_of_day(to_datetime(mask.end)))
    ranges = []
    for anchor in _anchors(first_anchor, limit, step):
        for restrict in restricts:
            start = to_timestamp(offset(anchor, restrict.start))
            end = to_timestamp(offset(anchor, restrict.end))
            if end > start:
                ranges.append(Range(start=start, end=end))
    return union(ranges)


def map_to_hour_range(restricts: Sequence[Range], mask: Range) -> List[Range]:
    first = start_of_day(to_datetime(mask.start)) - timedelta(days=1)
    return _unfold(restricts, mask, first, _next_day, lambda a, h: a + timedelta(hours=h))


def map_to_weekday_range(restricts: Sequence[Range], mask: Range) -> List[Range]:
    first = start_of_week(to_datetime(mask.start)) - timedelta(weeks=1)
    return _unfold(restricts, mask, first, _next_week, lambda a, d: a + timedelta(days=d))


def map_to_month_range(restricts: Sequence[Range], mask: Range) -> List[Range]:
    first = _previous_year(start_of_year(to_datetime(mask.start)))
    return _unfold(restricts, mask, first, _next_year, add_months)


def map_to_time_restriction(
    restriction: Optional[TimeRestriction],
    map_fn: MapRangeFn,
) -> Callable[[Sequence[Range]], List[Range]]:
    """
    Build a mask filter for one restriction unit.

    InRange keeps the restriction ranges inside each mask, OutRange keeps
    what is left of each mask once the ranges are removed.
    """
    def apply(masks: Sequence[Range]) -> List[Range]:
        if restriction is None:
            return list(masks)
        restricts = [Range(start=s, end=e) for s, e in restriction.ranges]
        result = []
        for mask in masks:
            ranges = map_fn(restricts, mask)
            if restriction.condition == RestrictionCondition.IN_RANGE:
                result.extend(intersect(ranges, [mask]))
            else:
                result.extend(complement(mask, ranges))
        return union(result)

    return apply
