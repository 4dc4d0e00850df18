"""
Interactive refinement around `schedule`.

A single `schedule` call never retries. This driver lets a caller react to the
outcome: a conflict is handed to `resolve_conflict`, which returns a new query
list; a successful schedule is handed to `ask_details`, which may replace
queries by more detailed sub-queries. The loop stops once a schedule succeeds
and no detail changes the query set.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from allocation_models import Material, Query, SchedulerConfig
from .engine import schedule
from .errors import ConflictError, RefinementExhaustedError
from .transforms import StateManager

logger = logging.getLogger(__name__)


class QueryDetail(BaseModel):
    """Replaces the query `id` by `queries` (an empty list removes it)."""
    id: int = Field(description="ID of the query to refine")
    queries: List[Query] = Field(default_factory=list, description="Sub-queries taking its place")


AskDetails = Callable[[List[Material]], Sequence[QueryDetail]]
ResolveConflict = Callable[[List[Query], ConflictError], Sequence[Query]]


def apply_details(queries: Sequence[Query], details: Sequence[QueryDetail]) -> List[Query]:
    """Details only target queries present in `queries`; unknown ids are ignored."""
    replacements: Dict[int, List[Query]] = {}
    for detail in details:
        replacements.setdefault(detail.id, []).extend(detail.queries)
    refined = []
    for query in queries:
        refined.extend(replacements.get(query.id, [query]))
    return refined


def _same_queries(first: Sequence[Query], second: Sequence[Query]) -> bool:
    return [q.model_dump() for q in first] == [q.model_dump() for q in second]


def schedule_with_feedback(
    config: SchedulerConfig,
    queries: Sequence[Query],
    ask_details: AskDetails,
    resolve_conflict: ResolveConflict,
    state_manager: Optional[StateManager] = None,
    max_rounds: int = 20,
) -> List[Material]:
    """
    Schedule, then refine until the query set is stable.
    Raises RefinementExhaustedError when `max_rounds` schedules did not settle.
    """
    current = list(queries)
    for refinement in range(max_rounds):
        try:
            materials = schedule(config, current, state_manager)
        except ConflictError as e:
            logger.warning(f"Refinement {refinement + 1}: conflict on query {e.victim}, asking for a resolution")
            current = list(resolve_conflict(current, e))
            continue

        details = list(ask_details(materials))
        refined = apply_details(current, details)
        if _same_queries(refined, current):
            logger.info(f"Refinement settled after {refinement + 1} schedules")
            return materials
        logger.info(f"Refinement {refinement + 1}: {len(details)} details, {len(refined)} queries")
        current = refined

    raise RefinementExhaustedError(f"Schedule did not settle within {max_rounds} refinements")
