"""
The Pressure Scheduling Engine.

This module implements the convergence loop.
Each round it:
1. Rebuilds the potentialities of every query against the current materials
   (calendar restrictions, links and the user-state handler mask them).
2. Picks the most pressured potentiality (Most Constrained First).
3. Materializes it against the pressure field of all the others.
The loop stops once nothing is left to place, or on the first conflict.
"""

import logging
from typing import Dict, Iterator, List, Optional, Sequence, Set, Union

from allocation_models import Material, Potentiality, Query, SchedulerConfig
from .constraints import MaskBuilder
from .errors import ConflictError
from .materializer import PressureUpdater, materialize_potentiality
from .intervals import intersect
from .potentials import PotentialKey, build_potentials, query_to_seeds
from .pressure import compute_pressure_chunks
from .state import Conflict, Converged, Progressing, SchedulerState, Snapshot, sort_materials
from .transforms import StateManager, TransformStateManager

logger = logging.getLogger(__name__)

Outcome = Union[Progressing, Converged, Conflict]


def placed_keys(materials: Sequence[Material]) -> Set[PotentialKey]:
    return {(m.query_id, m.potential_id) for m in materials}


def potentials_equal(first: Sequence[Potentiality], second: Sequence[Potentiality]) -> bool:
    """Structural comparison on query, pressure, duration and places."""
    if len(first) != len(second):
        return False
    return all(
        (a.query_id, a.potential_id, a.pressure, a.duration, a.places)
        == (b.query_id, b.potential_id, b.pressure, b.duration, b.places)
        for a, b in zip(first, second)
    )


def materials_equal(first: Sequence[Material], second: Sequence[Material]) -> bool:
    if len(first) != len(second):
        return False
    return all(
        (a.start, a.end, a.query_id, a.material_id) == (b.start, b.end, b.query_id, b.material_id)
        for a, b in zip(first, second)
    )


class PressureScheduler:
    """
    Main scheduling engine.
    Ingests Demand (Queries) and a horizon, outputs sorted Materials.
    """

    def __init__(
        self,
        config: SchedulerConfig,
        queries: Sequence[Query],
        state_manager: Optional[StateManager] = None,
    ):
        self.config = config
        self.queries = list(queries)
        self.state = SchedulerState(config, self.queries)

        manager = state_manager or TransformStateManager
        self.masks = MaskBuilder(config, manager(config, self.queries), self.state.record_user_state_failure)

        # Potentialities left without any window after the latest rebuild
        self.void_potentials: List[Potentiality] = []
        self._calendar_void: Dict[int, Set[PotentialKey]] = {}

    def _build(
        self,
        query: Query,
        materials: Sequence[Material],
        placed: Set[PotentialKey],
        potentials: Sequence[Potentiality],
    ) -> List[Potentiality]:
        mask = self.masks.build(query, potentials, materials)
        return build_potentials(self.config, query, materials, mask, placed)

    def recompute_potentials(self, materials: Sequence[Material]) -> List[Potentiality]:
        """
        Rebuild every query against `materials`.
        Returns the live potentialities; void ones are kept in `void_potentials`.
        """
        placed = placed_keys(materials)
        live, void = [], []
        for query in self.queries:
            for potential in self._build(query, materials, placed, self.state.potentials):
                (void if potential.is_void else live).append(potential)
        self.void_potentials = void
        return live

    def _pressure_updater(
        self,
        others: Sequence[Potentiality],
        materials: Sequence[Material],
    ) -> PressureUpdater:
        """Re-derive the others as if `extra` materials were also placed."""
        other_keys = {p.key for p in others}
        other_queries = [q for q in self.queries if any(key[0] == q.id for key in other_keys)]

        def update(extra: Sequence[Material]) -> List[Potentiality]:
            combined = sort_materials([*materials, *extra])
            placed = placed_keys(combined)
            return [
                potential
                for query in other_queries
                for potential in self._build(query, combined, placed, others)
                if potential.key in other_keys
            ]

        return update

    @staticmethod
    def _pick(potentials: Sequence[Potentiality]) -> Potentiality:
        """Maximum pressure; the later declared potentiality wins ties."""
        chosen = potentials[0]
        for potential in potentials[1:]:
            if potential.pressure >= chosen.pressure:
                chosen = potential
        return chosen

    def _calendar_unreachable(self, query: Query) -> Set[PotentialKey]:
        """Potentialities whose seed window shares no time with the calendar mask."""
        if query.id not in self._calendar_void:
            mask = self.masks.calendar_mask(query)
            self._calendar_void[query.id] = {
                (query.id, potential_id)
                for potential_id, seed in query_to_seeds(self.config, query)
                if not intersect([seed], mask)
            }
        return self._calendar_void[query.id]

    def _leftover_conflict(self, materials: Sequence[Material]) -> Optional[ConflictError]:
        queries = {q.id: q for q in self.queries}
        for potential in self.void_potentials:
            if potential.key in self._calendar_unreachable(queries[potential.query_id]):
                logger.info(
                    f"Skipping potential {potential.potential_id} of query {potential.query_id}: "
                    f"calendar restrictions close its whole window"
                )
                continue
            return ConflictError(potential.query_id, materials, reason="no window left after placement")
        return None

    def rounds(self) -> Iterator[Outcome]:
        """
        Execute the convergence loop, yielding one outcome per round.
        The last outcome is always Converged or Conflict.
        """
        logger.info(f"Starting pressure scheduler on {len(self.queries)} queries...")
        materials: List[Material] = []
        potentials = self.recompute_potentials(materials)
        self.state.potentials = potentials

        while potentials:
            to_place = self._pick(potentials)
            others = [p for p in potentials if p is not to_place]
            chunks = compute_pressure_chunks(self.config, others)
            logger.debug(
                f"Round {self.state.rounds + 1}: placing query {to_place.query_id} "
                f"potential {to_place.potential_id} (pressure {to_place.pressure:.3f})"
            )

            try:
                new_materials, updated = materialize_potentiality(
                    to_place, self._pressure_updater(others, materials), chunks
                )
            except ConflictError as e:
                e.materials = materials
                logger.warning(f"Conflict on query {e.victim}: {e.reason}")
                self.state.record_conflict(e)
                yield Conflict(e)
                return

            previous_materials, previous_potentials = materials, potentials
            # The handler sees the others as re-derived against the new materials
            self.state.potentials = list(updated)
            materials = sort_materials([*materials, *new_materials])
            self.state.add_materials(new_materials)
            potentials = self.recompute_potentials(materials)
            self.state.record_round(potentials, chunks)

            yield Progressing(Snapshot(
                round_number=self.state.rounds,
                placed=to_place.key,
                potentials=list(potentials),
                materials=list(materials),
                pressure_chunks=chunks,
            ))

            if materials_equal(materials, previous_materials) and potentials_equal(potentials, previous_potentials):
                logger.debug("Round changed nothing, loop is idle")
                break

        conflict = self._leftover_conflict(materials)
        if conflict is not None:
            logger.warning(f"Conflict on query {conflict.victim}: {conflict.reason}")
            self.state.record_conflict(conflict)
            yield Conflict(conflict)
            return

        logger.info(f"Scheduling complete: {len(materials)} materials in {self.state.rounds} rounds")
        yield Converged(list(materials))

    def run(self) -> List[Material]:
        """Drain the loop. Returns the sorted materials or raises ConflictError."""
        for outcome in self.rounds():
            if isinstance(outcome, Conflict):
                raise outcome.error
            if isinstance(outcome, Converged):
                return outcome.materials
        return list(self.state.materials)


def schedule(
    config: SchedulerConfig,
    queries: Sequence[Query],
    state_manager: Optional[StateManager] = None,
) -> List[Material]:
    """Place every query inside the horizon, or raise ConflictError naming the victim."""
    return PressureScheduler(config, queries, state_manager).run()
