"""
Intermediate data models of the pressure engine.

This module defines what sits between the queries and the final schedule:
1. Ranges (plain intervals of time)
2. Pressure chunks (intervals carrying a linear pressure)
3. PotRanges (boundary dimensions of a candidate window)
4. Potentialities (not-yet-placed candidates competing for time)
"""

from enum import Enum
from typing import List
from pydantic import BaseModel, Field, model_validator, ConfigDict

from .query import TimeDuration


class Range(BaseModel):
    """A closed interval of time."""
    start: float
    end: float

    model_config = ConfigDict(frozen=True)

    @model_validator(mode='after')
    def validate_order(self):
        if self.end < self.start:
            raise ValueError(f"Range end {self.end} is before start {self.start}")
        return self

    @property
    def length(self) -> float:
        return self.end - self.start

    def overlaps(self, other: "Range") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, x: float) -> bool:
        return self.start <= x <= self.end


class PressureChunk(Range):
    """An interval over which pressure varies linearly."""
    pressure_start: float = 0.0
    pressure_end: float = 0.0

    def pressure_at(self, x: float) -> float:
        """Linear interpolation of the pressure, clamped to the chunk."""
        if self.end == self.start:
            return self.pressure_end if x >= self.end else self.pressure_start
        x = min(max(x, self.start), self.end)
        ratio = (x - self.start) / (self.end - self.start)
        return self.pressure_start + ratio * (self.pressure_end - self.pressure_start)


class PotRangeKind(str, Enum):
    """Which boundary dimension a PotRange describes, and on which side of its target."""
    START = "start"
    END = "end"
    START_BEFORE = "start-before"
    START_AFTER = "start-after"
    END_BEFORE = "end-before"
    END_AFTER = "end-after"

    @property
    def dimension(self) -> str:
        return "start" if self.value.startswith("start") else "end"


class PotRange(PressureChunk):
    """
    The range a start (or end) point could take inside one window,
    with the pressure gradient the query puts on it.
    """
    kind: PotRangeKind

    @property
    def dimension(self) -> str:
        return self.kind.dimension


class Potentiality(BaseModel):
    """
    A candidate allocation for one query (or one goal repetition).
    `places` holds disjoint windows; an empty list means the potentiality is void.
    """
    query_id: int = Field(description="Originating query")
    potential_id: int = Field(description="Goal repetition index (0 for plain queries)")
    is_splittable: bool = Field(default=False)
    duration: TimeDuration = Field(description="Duration envelope to place")
    pressure: float = Field(description="Contention score computed from duration and places")
    places: List[List[PotRange]] = Field(default_factory=list, description="Candidate windows")

    model_config = ConfigDict(frozen=True)

    @property
    def key(self):
        return (self.query_id, self.potential_id)

    @property
    def is_void(self) -> bool:
        return not self.places
