"""
Potentiality Builder.

Maps one query onto its potentialities: a duration envelope plus the disjoint
windows it could still be placed in. Each window carries the query's start and
end boundaries as PotRanges with a soft pressure profile peaking at the target.
"""

import math
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from allocation_models import (
    Material,
    Position,
    PotRange,
    PotRangeKind,
    Potentiality,
    Query,
    Range,
    SchedulerConfig,
    TimeBoundary,
    TimeDuration,
)
from .intervals import intersect, subtract

EPSILON = 1e-9

PotentialKey = Tuple[int, int]


def compute_pressure(min_duration: float, target_duration: float, space: float) -> float:
    """
    Intrinsic pressure of a duration envelope over the available space.

    Saturates toward 1 as `min_duration` approaches `space` and exceeds 1
    once the space is too small to hold the minimum.
    """
    if space <= 0:
        return math.inf if min_duration > 0 else 1.0
    min_ratio = min_duration / space
    if min_ratio >= 1:
        return min_ratio
    target_ratio = target_duration / space
    return min_ratio + (1 - min_ratio) * (target_ratio / (target_ratio + 1))


def split_dimensions(place: Sequence[PotRange]) -> Tuple[List[PotRange], List[PotRange]]:
    starts = [r for r in place if r.dimension == "start"]
    ends = [r for r in place if r.dimension == "end"]
    return starts, ends


def place_to_range(place: Sequence[PotRange]) -> Range:
    """The span a material could occupy inside one window."""
    starts, ends = split_dimensions(place)
    start = min(r.start for r in (starts or place))
    end = max(r.end for r in (ends or place))
    return Range(start=start, end=max(start, end))


def places_space(places: Iterable[Sequence[PotRange]]) -> float:
    return sum(place_to_range(place).length for place in places)


def start_bounds(place: Sequence[PotRange], duration: float) -> Optional[Tuple[float, float]]:
    """
    Earliest and latest start of a block of `duration` respecting both the
    start and the end dimension of the window, or None if nothing fits.
    """
    starts, ends = split_dimensions(place)
    if not starts or not ends:
        return None
    window = place_to_range(place)
    low = max(min(r.start for r in starts), min(r.start for r in ends) - duration, window.start)
    high = min(max(r.end for r in starts), max(r.end for r in ends) - duration, window.end - duration)
    if low > high + EPSILON:
        return None
    return low, max(low, high)


def query_duration(query: Query) -> TimeDuration:
    """
    Duration envelope of a query.

    Splittable goals place their quantity. Otherwise the explicit duration
    wins; without one it is derived from the start and end boundaries.
    """
    if query.is_splittable:
        return query.goal.quantity
    position = query.position
    if position.duration is not None:
        return position.duration
    start, end = position.start, position.end
    shortest = end.first_of('min', 'target', 'max') - start.first_of('max', 'target', 'min')
    preferred = end.first_of('target', 'min', 'max') - start.first_of('target', 'max', 'min')
    shortest = max(0.0, shortest)
    return TimeDuration(min=shortest, target=max(shortest, preferred))


def goal_to_subpipes(config: SchedulerConfig, query: Query) -> List[Range]:
    """
    Split the horizon into one window per goal repetition.

    An Atomic goal repeats `quantity.target` times per period, so each of its
    windows lasts `time / quantity.target`; a Splittable goal gets one window
    per period.
    """
    goal = query.goal
    if query.is_splittable:
        loop = goal.time
    elif goal.quantity.target > 0:
        loop = goal.time / goal.quantity.target
    else:
        return []
    count = math.floor((config.end_date - config.start_date) / loop + EPSILON)
    return [
        Range(start=config.start_date + loop * i, end=config.start_date + loop * (i + 1))
        for i in range(count)
    ]


def query_to_seeds(config: SchedulerConfig, query: Query) -> List[Tuple[int, Range]]:
    """(potential_id, outer window) pairs for a query."""
    if query.is_goal:
        return list(enumerate(goal_to_subpipes(config, query)))
    return [(0, config.horizon)]


def boundary_to_pot_ranges(
    boundary: Optional[TimeBoundary],
    dimension: str,
    horizon: Range,
) -> List[PotRange]:
    """
    Unit pressure profile of one boundary dimension.

    An exact value or a min/max-only boundary is flat; a target turns into a
    `-before` range rising to 1 and an `-after` range falling back to 0.
    """
    flat = PotRangeKind(dimension)
    if boundary is None or boundary.is_empty:
        return [PotRange(kind=flat, start=horizon.start, end=horizon.end,
                         pressure_start=1.0, pressure_end=1.0)]

    target = boundary.target
    low = boundary.min if boundary.min is not None else horizon.start
    high = boundary.max if boundary.max is not None else horizon.end

    if target is None or boundary.is_exact:
        if target is not None:
            low = high = target
        low = min(low, high)
        return [PotRange(kind=flat, start=low, end=high, pressure_start=1.0, pressure_end=1.0)]

    ranges = []
    if low < target:
        ranges.append(PotRange(kind=PotRangeKind(f"{dimension}-before"), start=low, end=target,
                               pressure_start=0.0, pressure_end=1.0))
    if target < high:
        ranges.append(PotRange(kind=PotRangeKind(f"{dimension}-after"), start=target, end=high,
                               pressure_start=1.0, pressure_end=0.0))
    if not ranges:
        ranges.append(PotRange(kind=flat, start=target, end=target,
                               pressure_start=1.0, pressure_end=1.0))
    return ranges


def clip_pot_range(pot_range: PotRange, window: Range) -> Optional[PotRange]:
    """Intersect a PotRange with a window, interpolating pressure at the cuts."""
    start = max(pot_range.start, window.start)
    end = min(pot_range.end, window.end)
    if start > end:
        return None
    return pot_range.model_copy(update={
        'start': start,
        'end': end,
        'pressure_start': pot_range.pressure_at(start),
        'pressure_end': pot_range.pressure_at(end),
    })


def scale_pot_range(pot_range: PotRange, factor: float) -> PotRange:
    return pot_range.model_copy(update={
        'pressure_start': pot_range.pressure_start * factor,
        'pressure_end': pot_range.pressure_end * factor,
    })


def window_to_place(
    position: Optional[Position],
    bounds: Range,
    window: Range,
) -> Optional[List[PotRange]]:
    """
    Boundary ranges of one free window. `position` is None for goals, whose
    repetitions are only bounded by their own subpipe.
    """
    start = position.start if position is not None else None
    end = position.end if position is not None else None
    raw = boundary_to_pot_ranges(start, "start", bounds) + boundary_to_pot_ranges(end, "end", bounds)
    place = [clipped for clipped in (clip_pot_range(r, window) for r in raw) if clipped is not None]
    starts, ends = split_dimensions(place)
    if not starts or not ends:
        return None
    return place


def build_potentials(
    config: SchedulerConfig,
    query: Query,
    materials: Sequence[Material],
    mask: Sequence[Range],
    placed: Set[PotentialKey] = frozenset(),
) -> List[Potentiality]:
    """
    Build the potentialities of one query against the current schedule.

    Free windows are the seed ∩ mask minus every material. Atomic windows that
    cannot hold `duration.min` are dropped. A potentiality left without windows
    is returned void (empty places, pressure from zero space).
    """
    duration = query_duration(query)
    occupied = [m.to_range() for m in materials]
    position = None if query.is_goal else query.position
    result = []
    for potential_id, seed in query_to_seeds(config, query):
        if (query.id, potential_id) in placed:
            continue
        bounds = seed if query.is_goal else config.horizon
        places = []
        for window in subtract(intersect([seed], mask), occupied):
            place = window_to_place(position, bounds, window)
            if place is None:
                continue
            if not query.is_splittable and start_bounds(place, duration.min) is None:
                continue
            places.append(place)

        pressure = compute_pressure(duration.min, duration.target, places_space(places))
        level = pressure if math.isfinite(pressure) else 1.0
        result.append(Potentiality(
            query_id=query.id,
            potential_id=potential_id,
            is_splittable=query.is_splittable,
            duration=duration,
            pressure=pressure,
            places=[[scale_pot_range(r, level) for r in place] for place in places],
        ))
    return result
