"""
Error taxonomy of the pressure scheduler.

Only the materializer and the user-state collaborator can lead to a conflict;
the potentiality builder and the pressure field are total over valid input.
"""

from typing import List, Optional, Sequence

from allocation_models import Material


class SchedulingError(Exception):
    """Base class for every error raised by the scheduler."""


class ConflictError(SchedulingError):
    """
    A query cannot be placed without overcommitting time.

    `victim` identifies the query, `materials` the partial schedule reached
    before the conflict was proven.
    """

    def __init__(self, victim: int, materials: Sequence[Material] = (), reason: str = ""):
        self.victim = victim
        self.reason = reason or "no placement keeps every pressure at or below 1"
        self._materials: List[Material] = list(materials)
        super().__init__(f"Conflict on query {victim}: {self.reason}")

    @property
    def materials(self) -> List[Material]:
        return list(self._materials)

    @materials.setter
    def materials(self, materials: Sequence[Material]) -> None:
        self._materials = list(materials)


class InvalidInputError(SchedulingError):
    """The engine was handed inconsistent input (e.g. no pressure chunks for a horizon)."""


class UnsatisfiableNeedError(SchedulingError):
    """A query needs a resource no sibling query can provide."""

    def __init__(self, query_id: int, collection_name: str, detail: Optional[str] = None):
        self.query_id = query_id
        self.collection_name = collection_name
        message = f"Query {query_id} needs '{collection_name}'"
        super().__init__(f"{message}: {detail}" if detail else message)


class RefinementExhaustedError(SchedulingError):
    """The feedback loop did not settle within its round budget."""
