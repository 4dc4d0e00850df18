"""
User-state collaborator: resolves need/provide transforms into placement masks.

A handler is built once per schedule call, `state_manager(config, queries)`,
and then asked `handler(query, potentials, materials)` for the ranges the
query may occupy given what is already placed. Handlers may raise; the
convergence loop treats that as "no valid placement" for the query.
"""

from typing import Callable, List, Sequence

from allocation_models import Material, Need, Potentiality, Provide, Query, Range, SchedulerConfig
from .errors import UnsatisfiableNeedError
from .intervals import intersect
from .potentials import query_duration

UserStateHandler = Callable[[Query, Sequence[Potentiality], Sequence[Material]], List[Range]]
StateManager = Callable[[SchedulerConfig, Sequence[Query]], UserStateHandler]


def open_state_manager(config: SchedulerConfig, queries: Sequence[Query]) -> UserStateHandler:
    """A collaborator without opinion: the whole horizon is always allowed."""
    def handler(query, potentials, materials):
        return [config.horizon]
    return handler


class TransformStateManager:
    """
    Default need/provide resolution.

    - A consumer of a resource waits for its providers' materials and is then
      allowed from the end of the earliest one.
    - A provider flagged `wait` waits for its consumers' materials and must end
      before the earliest of them starts. Consumers of such a provider start no
      earlier than the sum of the waiting providers' target durations, so the
      providers still fit in front of them.
    """

    def __init__(self, config: SchedulerConfig, queries: Sequence[Query]):
        self.config = config
        self.queries = list(queries)

    def __call__(
        self,
        query: Query,
        potentials: Sequence[Potentiality],
        materials: Sequence[Material],
    ) -> List[Range]:
        mask = [self.config.horizon]
        for need in query.needs:
            mask = intersect(mask, self._need_mask(query, need, materials))
        for provide in query.provides:
            if provide.wait:
                mask = intersect(mask, self._wait_mask(query, provide, materials))
        return mask

    def _providers(self, query: Query, need: Need) -> List[tuple]:
        return [
            (other, provide)
            for other in self.queries
            if other.id != query.id
            for provide in other.provides
            if need.matches(provide)
        ]

    def _consumers(self, query: Query, provide: Provide) -> List[Query]:
        return [
            other for other in self.queries
            if other.id != query.id and any(need.matches(provide) for need in other.needs)
        ]

    def _need_mask(self, query: Query, need: Need, materials: Sequence[Material]) -> List[Range]:
        providers = self._providers(query, need)
        if not providers:
            raise UnsatisfiableNeedError(query.id, need.collection_name, "no provider")
        available = sum(provide.quantity for _, provide in providers)
        if available < need.quantity:
            raise UnsatisfiableNeedError(
                query.id, need.collection_name,
                f"{need.quantity} needed, {available} provided"
            )

        # Waiting providers are placed after their consumers, in the lead kept free before them
        waiting = {other.id: other for other, provide in providers if provide.wait}
        if waiting:
            lead = sum(query_duration(other).target for other in waiting.values())
            start = self.config.start_date + lead
            if start >= self.config.end_date:
                return []
            return [Range(start=start, end=self.config.end_date)]

        provider_ids = {other.id for other, _ in providers}
        ends = [m.end for m in materials if m.query_id in provider_ids]
        if not ends:
            return []
        start = min(ends)
        if start >= self.config.end_date:
            return []
        return [Range(start=start, end=self.config.end_date)]

    def _wait_mask(self, query: Query, provide: Provide, materials: Sequence[Material]) -> List[Range]:
        consumers = self._consumers(query, provide)
        if not consumers:
            return [self.config.horizon]
        consumer_ids = {other.id for other in consumers}
        starts = [m.start for m in materials if m.query_id in consumer_ids]
        if not starts:
            return []
        end = min(starts)
        if end <= self.config.start_date:
            return []
        return [Range(start=self.config.start_date, end=end)]
