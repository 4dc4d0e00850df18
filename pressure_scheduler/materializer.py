"""
The Materializer.

Turns the most pressured potentiality into concrete materials.
It combines two steps:
1. Equilibrium search - picks a duration between `min` and `target` that balances
   the query's own pressure against the pressure it leaves on the others.
2. Placement - puts that duration where the field of the others is the lowest.
"""

import logging
import math
from collections import deque
from typing import Callable, List, Sequence, Tuple

from allocation_models import Material, PotRange, Potentiality, PressureChunk, Range
from .errors import ConflictError, InvalidInputError
from .intervals import union
from .potentials import compute_pressure, place_to_range, places_space, split_dimensions, start_bounds
from .pressure import area_between, clip_chunk, compute_pressure_area

logger = logging.getLogger(__name__)

PressureUpdater = Callable[[Sequence[Material]], List[Potentiality]]


class Materializer:
    """
    Places one potentiality against the pressure field of the others.
    Tuning constants can be overridden by subclassing.
    """

    # Mean pressures closer than this are considered balanced
    EQUILIBRIUM_TOLERANCE = 0.1
    # Bisection step is divided by this every round
    STEP_DAMPING = 1.8
    # The search stops once the last PLATEAU_WINDOW normalized steps
    # all sit within PLATEAU_SPREAD of their mean
    PLATEAU_WINDOW = 3
    PLATEAU_SPREAD = 0.05
    # Above full commitment the search only stops once its step is this small
    MIN_STEP = 1e-3
    MAX_SEARCH_ROUNDS = 60
    # Weight of the query's own boundary profile against the field area
    BOUNDARY_WEIGHT = 0.5
    EPSILON = 1e-9

    def __init__(self, update_pressures: PressureUpdater, pressure_chunks: Sequence[PressureChunk]):
        if not pressure_chunks:
            raise InvalidInputError("Cannot materialize without pressure chunks covering the horizon")
        self.update_pressures = update_pressures
        self.pressure_chunks = list(pressure_chunks)

    def materialize(self, to_place: Potentiality) -> Tuple[List[Material], List[Potentiality]]:
        """
        Place `to_place` and return its materials with the updated potentials of the others.
        Raises ConflictError when no duration keeps every pressure at or below 1.
        """
        duration = to_place.duration
        at_min = self.simulate_placement(to_place, duration.min)
        at_target = self.simulate_placement(to_place, duration.target)
        if not at_min and not at_target:
            raise ConflictError(to_place.query_id, reason="no window can hold the minimum duration")

        updated_min = self.update_pressures(at_min)
        updated_target = self.update_pressures(at_target)
        avg_min = self.mean_pressure(updated_min)
        avg_target = self.mean_pressure(updated_target)

        if at_target and self._balanced(avg_min, avg_target):
            if not self.is_valid(updated_min):
                raise ConflictError(to_place.query_id, reason="placing it overcommits another query")
            logger.debug(f"Query {to_place.query_id}: target duration accepted (mean pressure {avg_target:.3f})")
            return at_target, updated_target

        return self._search(to_place)

    def _balanced(self, first: float, second: float) -> bool:
        return first == second or abs(first - second) < self.EQUILIBRIUM_TOLERANCE

    def _capacity(self, to_place: Potentiality) -> float:
        """Longest duration the windows could ever hold."""
        if to_place.is_splittable:
            return places_space(to_place.places)
        return max((place_to_range(place).length for place in to_place.places), default=0.0)

    def _search(self, to_place: Potentiality) -> Tuple[List[Material], List[Potentiality]]:
        """Damped bisection over the duration, between `min` and what the windows can hold."""
        shortest = to_place.duration.min
        longest = max(shortest, min(to_place.duration.target, self._capacity(to_place)))
        span = longest - shortest
        space = places_space(to_place.places)

        test_duration = shortest + span / 2
        delta = span / 2
        steps = deque(maxlen=self.PLATEAU_WINDOW)
        materials: List[Material] = []
        updated: List[Potentiality] = []

        for search_round in range(self.MAX_SEARCH_ROUNDS):
            materials = self.simulate_placement(to_place, test_duration)
            updated = self.update_pressures(materials)
            if span <= 0:
                break

            avg_pressure = self.mean_pressure(updated)
            self_pressure = compute_pressure(shortest, test_duration, space)
            # Others are overcommitted: back off whatever our own pressure says
            direction = 1 if avg_pressure > self_pressure and avg_pressure <= 1 else -1

            delta /= self.STEP_DAMPING
            previous = test_duration
            test_duration = min(longest, max(shortest, test_duration + direction * delta))
            steps.append((test_duration - previous) / span)

            if avg_pressure <= 1:
                if len(steps) == self.PLATEAU_WINDOW and self._plateau(steps):
                    logger.debug(
                        f"Query {to_place.query_id}: search settled after {search_round + 1} rounds "
                        f"at {previous:.0f} (mean pressure {avg_pressure:.3f})"
                    )
                    break
            elif test_duration == previous or delta <= span * self.MIN_STEP:
                logger.debug(f"Query {to_place.query_id}: search stalled above full commitment")
                break

        if not materials or not self.is_valid(updated):
            raise ConflictError(to_place.query_id, reason="no duration keeps every pressure at or below 1")
        return materials, updated

    def _plateau(self, steps: Sequence[float]) -> bool:
        average = sum(steps) / len(steps)
        return all(abs(step - average) <= self.PLATEAU_SPREAD for step in steps)

    def simulate_placement(self, to_place: Potentiality, duration: float) -> List[Material]:
        """Materials for a fixed duration, or [] when it fits nowhere."""
        if duration <= 0:
            return []
        if to_place.is_splittable:
            return self._place_splittable(to_place, duration)
        return self._place_atomic(to_place, duration)

    # --- Atomic ---

    def _place_atomic(self, to_place: Potentiality, duration: float) -> List[Material]:
        candidates = []
        for place in to_place.places:
            bounds = start_bounds(place, duration)
            if bounds is None:
                continue
            for start in self._anchors(place, duration, bounds):
                weight = self._atomic_weight(place, start, duration)
                candidates.append((round(weight, 9), start))

        if not candidates:
            return []
        _, start = min(candidates)
        return [Material(
            query_id=to_place.query_id,
            potential_id=to_place.potential_id,
            start=start,
            end=start + duration,
        )]

    def _anchors(self, place: Sequence[PotRange], duration: float, bounds: Tuple[float, float]) -> List[float]:
        """Candidate starts: the window bounds, the boundary breakpoints and both edges of every chunk."""
        low, high = bounds
        starts, ends = split_dimensions(place)
        points = [low, high]
        points.extend(point for r in starts for point in (r.start, r.end))
        points.extend(point - duration for r in ends for point in (r.start, r.end))
        for chunk in self.pressure_chunks:
            points.append(chunk.start)
            points.append(chunk.end - duration)
        return sorted({min(high, max(low, point)) for point in points})

    def _atomic_weight(self, place: Sequence[PotRange], start: float, duration: float) -> float:
        starts, ends = split_dimensions(place)
        start_fit = self._profile(starts, start)
        end_fit = self._profile(ends, start + duration)
        bias = self.BOUNDARY_WEIGHT * duration * (2 - start_fit - end_fit) / 2
        return area_between(self.pressure_chunks, start, start + duration) + bias

    @staticmethod
    def _profile(ranges: Sequence[PotRange], x: float) -> float:
        """How close `x` sits to the boundary target, from 0 (min/max) to 1 (target)."""
        peak = max((max(r.pressure_start, r.pressure_end) for r in ranges), default=0.0)
        if peak <= 0 or not math.isfinite(peak):
            return 1.0
        values = [r.pressure_at(x) for r in ranges if r.contains(x)]
        return max(values, default=0.0) / peak

    # --- Splittable ---

    def _place_splittable(self, to_place: Potentiality, duration: float) -> List[Material]:
        pieces = []
        for place in to_place.places:
            window = place_to_range(place)
            for chunk in self.pressure_chunks:
                clipped = clip_chunk(chunk, window.start, window.end)
                if clipped is not None:
                    pieces.append(clipped)

        if sum(piece.length for piece in pieces) < duration - self.EPSILON:
            return []

        # Lowest pressure area first
        pieces.sort(key=lambda c: (round(compute_pressure_area(c), 9), c.start))
        remaining = duration
        taken = []
        for piece in pieces:
            if remaining <= self.EPSILON:
                break
            if piece.length <= remaining + self.EPSILON:
                taken.append(Range(start=piece.start, end=piece.end))
                remaining -= piece.length
            elif piece.pressure_start <= piece.pressure_end:
                taken.append(Range(start=piece.start, end=piece.start + remaining))
                remaining = 0
            else:
                taken.append(Range(start=piece.end - remaining, end=piece.end))
                remaining = 0

        return [
            Material(
                query_id=to_place.query_id,
                potential_id=to_place.potential_id,
                split_id=split_id,
                start=r.start,
                end=r.end,
            )
            for split_id, r in enumerate(union(taken))
        ]

    # --- Pressure checks ---

    @staticmethod
    def mean_pressure(potentials: Sequence[Potentiality]) -> float:
        if not potentials:
            return 0.0
        return sum(p.pressure for p in potentials) / len(potentials)

    @classmethod
    def is_valid(cls, potentials: Sequence[Potentiality]) -> bool:
        """No potentiality is pushed above full commitment."""
        return all(p.pressure <= 1 + cls.EPSILON for p in potentials)


def materialize_potentiality(
    to_place: Potentiality,
    update_pressures: PressureUpdater,
    pressure_chunks: Sequence[PressureChunk],
) -> Tuple[List[Material], List[Potentiality]]:
    return Materializer(update_pressures, pressure_chunks).materialize(to_place)
