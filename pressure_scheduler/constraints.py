"""
Placement Mask Logic.

This module answers the question: "Where may Query X be placed right now?"
It intersects three sources of allowed time:
1. Calendar restrictions (month, weekday, hour).
2. Dependency links to materials already placed.
3. The user-state collaborator (resources, provider/consumer ordering).
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from allocation_models import (
    LinkOrigin,
    Material,
    Potentiality,
    Query,
    Range,
    SchedulerConfig,
    TimeRestrictions,
)
from .intervals import intersect, intersect_all, union
from .potentials import query_duration
from .restrictions import (
    map_to_hour_range,
    map_to_month_range,
    map_to_time_restriction,
    map_to_weekday_range,
)
from .transforms import UserStateHandler

logger = logging.getLogger(__name__)

# Degenerate window outside any horizon: forces the query toward a conflict.
UNSATISFIABLE_MASK = [Range(start=-2, end=-2)]


@dataclass
class UserStateFailure:
    """Detailed reason why the user-state collaborator rejected a query."""
    query_id: int
    reason: str


def time_restrictions_to_mask(
    config: SchedulerConfig,
    restrictions: Optional[TimeRestrictions],
) -> List[Range]:
    """Apply month, then weekday, then hour restrictions to the horizon."""
    masks = [config.horizon]
    if restrictions is None:
        return masks
    masks = map_to_time_restriction(restrictions.month, map_to_month_range)(masks)
    masks = map_to_time_restriction(restrictions.weekday, map_to_weekday_range)(masks)
    masks = map_to_time_restriction(restrictions.hour, map_to_hour_range)(masks)
    return masks


def link_to_mask(
    materials: Sequence[Material],
    config: SchedulerConfig,
    query: Query,
) -> List[Range]:
    """
    Allowed ranges implied by the query's links.

    Each link allows, around every matching material, the span from
    `origin + distance.min` to `origin + distance.max + duration.target`.
    Several links must all be satisfied.
    """
    if not query.links:
        return [config.horizon]
    duration_target = query_duration(query).target
    masks = []
    for link in query.links:
        low = link.distance.first_of('min', 'target', 'max') or 0
        high = link.distance.first_of('max', 'target', 'min') or 0
        ranges = []
        for material in materials:
            if material.query_id != link.query_id or material.potential_id != link.potential_id:
                continue
            if link.split_id is not None and material.split_id != link.split_id:
                continue
            point = material.start if link.origin == LinkOrigin.START else material.end
            ranges.append(Range(start=point + low, end=point + high + duration_target))
        masks.append(union(ranges))
    return intersect_all(masks)


def guard_user_state(
    handler: UserStateHandler,
    on_failure: Optional[Callable[[UserStateFailure], None]] = None,
) -> UserStateHandler:
    """
    Wrap a user-state handler so it never breaks the convergence loop.
    A raised error turns into the unsatisfiable mask for that query.
    """
    def guarded(query: Query, potentials: Sequence[Potentiality], materials: Sequence[Material]) -> List[Range]:
        other_materials = [m for m in materials if m.query_id != query.id]
        try:
            return list(handler(query, list(potentials), other_materials))
        except Exception as e:
            logger.debug(f"User state rejected query {query.id}: {e}")
            if on_failure is not None:
                on_failure(UserStateFailure(query_id=query.id, reason=str(e)))
            return list(UNSATISFIABLE_MASK)

    return guarded


class MaskBuilder:
    """
    Computes the allowed ranges for a query given the current schedule.
    """

    def __init__(
        self,
        config: SchedulerConfig,
        user_state: UserStateHandler,
        on_failure: Optional[Callable[[UserStateFailure], None]] = None,
    ):
        self.config = config
        self.user_state = guard_user_state(user_state, on_failure)
        # Calendar masks depend only on the query and the horizon
        self._calendar_masks: Dict[int, List[Range]] = {}

    def calendar_mask(self, query: Query) -> List[Range]:
        if query.id not in self._calendar_masks:
            self._calendar_masks[query.id] = time_restrictions_to_mask(
                self.config, query.time_restrictions
            )
        return self._calendar_masks[query.id]

    def build(
        self,
        query: Query,
        potentials: Sequence[Potentiality],
        materials: Sequence[Material],
    ) -> List[Range]:
        """Master mask function: calendar ∩ links ∩ user state."""
        mask = self.calendar_mask(query)
        if query.links:
            mask = intersect(mask, link_to_mask(materials, self.config, query))
        if mask:
            mask = intersect(mask, self.user_state(query, potentials, materials))
        return mask
