"""
Scheduler State Management.

This module acts as the 'Memory' of the convergence loop.
It tracks:
1. The current potentials, the sorted materials and the latest pressure field.
2. Conflicts and user-state rejections (for the final report).
3. Round snapshots, exposed to observers as tagged outcomes.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from allocation_models import Material, Potentiality, PressureChunk, Query, SchedulerConfig
from .constraints import UserStateFailure
from .errors import ConflictError


@dataclass(frozen=True)
class Snapshot:
    """Immutable view of the loop after one round."""
    round_number: int
    placed: Tuple[int, int]
    potentials: List[Potentiality] = field(default_factory=list)
    materials: List[Material] = field(default_factory=list)
    pressure_chunks: List[PressureChunk] = field(default_factory=list)


@dataclass(frozen=True)
class Progressing:
    snapshot: Snapshot


@dataclass(frozen=True)
class Converged:
    materials: List[Material]


@dataclass(frozen=True)
class Conflict:
    error: ConflictError


def sort_materials(materials: Iterable[Material]) -> List[Material]:
    return sorted(materials, key=lambda m: (m.start, m.end, m.query_id, m.potential_id))


class SchedulerState:
    """
    Maintains the mutable state of the scheduler during execution.
    The convergence loop is its only writer.
    """

    def __init__(self, config: Optional[SchedulerConfig] = None, queries: Iterable[Query] = ()):
        self.config = config
        self.query_names: Dict[int, str] = {q.id: q.name for q in queries}

        self.potentials: List[Potentiality] = []
        self.materials: List[Material] = []
        self.pressure_chunks: List[PressureChunk] = []
        self.rounds = 0

        # Failure Tracking
        self.conflicts: List[ConflictError] = []
        self.user_state_failures: List[UserStateFailure] = []

    def add_materials(self, materials: Iterable[Material]) -> None:
        """Commit new materials, keeping the schedule sorted by start."""
        self.materials = sort_materials([*self.materials, *materials])

    def record_round(self, potentials: List[Potentiality], pressure_chunks: List[PressureChunk]) -> None:
        self.rounds += 1
        self.potentials = list(potentials)
        self.pressure_chunks = list(pressure_chunks)

    def record_conflict(self, error: ConflictError) -> None:
        self.conflicts.append(error)

    def record_user_state_failure(self, failure: UserStateFailure) -> None:
        """Log a rejection once; the same handler is asked many times per round."""
        if failure not in self.user_state_failures:
            self.user_state_failures.append(failure)

    # --- Reporting Methods ---

    def get_statistics(self) -> Dict[str, Any]:
        """Summary of the schedule for the final report."""
        if not self.materials:
            return {
                "total_materials": 0,
                "placed_queries": 0,
                "rounds": self.rounds,
                "conflict_count": len(self.conflicts),
                "utilization": 0.0,
            }

        per_query = defaultdict(float)
        for material in self.materials:
            per_query[material.query_id] += material.length
        allocated = sum(per_query.values())

        utilization = 0.0
        if self.config is not None:
            utilization = allocated / self.config.horizon.length * 100

        peak = max(
            (max(c.pressure_start, c.pressure_end) for c in self.pressure_chunks),
            default=0.0,
        )

        return {
            "total_materials": len(self.materials),
            "placed_queries": len(per_query),
            "placed_potentials": len({(m.query_id, m.potential_id) for m in self.materials}),
            "split_materials": sum(1 for m in self.materials if m.split_id is not None),
            "rounds": self.rounds,
            "allocated_time": allocated,
            "utilization": round(utilization, 1),
            "time_by_query": {
                self.query_names.get(qid, str(qid)): length for qid, length in sorted(per_query.items())
            },
            "date_range": (self.materials[0].start, max(m.end for m in self.materials)),
            "peak_pressure": round(peak, 3),
            "conflict_count": len(self.conflicts),
            "user_state_failures": len(self.user_state_failures),
        }

    def get_conflict_report(self) -> List[Dict]:
        """
        Human-readable list of what failed and why.
        Each entry carries the victim, the reason and the partial progress.
        """
        report = []
        for error in self.conflicts:
            rejections = [f.reason for f in self.user_state_failures if f.query_id == error.victim]
            report.append({
                "victim": error.victim,
                "query_name": self.query_names.get(error.victim, "unknown"),
                "reason": error.reason,
                "partial_materials": len(error.materials),
                "user_state_rejections": rejections,
            })

        report.sort(key=lambda x: x["victim"])
        return report

    def clear(self) -> None:
        """Reset state (useful for testing or re-running)."""
        self.potentials.clear()
        self.materials.clear()
        self.pressure_chunks.clear()
        self.conflicts.clear()
        self.user_state_failures.clear()
        self.rounds = 0
