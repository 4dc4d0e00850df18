"""
Query data models for the pressure scheduler.

A query is the 'Demand' side of the engine: a declarative request for time.
It can be a single atomic event, a recurring goal, an event linked to another
query's placement, or a provider/consumer of a shared resource.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field, model_validator, ConfigDict


class GoalKind(str, Enum):
    """How a recurring goal may be placed."""
    ATOMIC = "Atomic"          # repeated as separate whole occurrences
    SPLITTABLE = "Splittable"  # fillable across fragmented time


class RestrictionCondition(str, Enum):
    """Whether restriction ranges are allowed or forbidden."""
    IN_RANGE = "InRange"
    OUT_RANGE = "OutRange"


class LinkOrigin(str, Enum):
    """Which edge of the linked material the distance is measured from."""
    START = "start"
    END = "end"


class TimeBoundary(BaseModel):
    """A soft boundary: hard limits (min/max) around a preferred target."""
    min: Optional[float] = Field(default=None, description="Earliest acceptable value")
    target: Optional[float] = Field(default=None, description="Preferred value")
    max: Optional[float] = Field(default=None, description="Latest acceptable value")

    @model_validator(mode='after')
    def validate_order(self):
        values = [v for v in (self.min, self.target, self.max) if v is not None]
        if values != sorted(values):
            raise ValueError("TimeBoundary requires min <= target <= max")
        return self

    @property
    def is_empty(self) -> bool:
        return self.min is None and self.target is None and self.max is None

    @property
    def is_exact(self) -> bool:
        """min, target and max all pin the same instant."""
        return (
            self.target is not None
            and self.min == self.target
            and self.max == self.target
        )

    def first_of(self, *props: str) -> Optional[float]:
        """Return the first defined value among `props` (e.g. 'target', 'min')."""
        for prop in props:
            value = getattr(self, prop)
            if value is not None:
                return value
        return None


class TimeDuration(BaseModel):
    """Duration envelope: the minimum acceptable and the desired length."""
    min: float = Field(ge=0, description="Shortest acceptable duration")
    target: float = Field(ge=0, description="Desired duration")

    @model_validator(mode='before')
    @classmethod
    def default_min_to_target(cls, data: Any):
        if isinstance(data, dict) and data.get('min') is None and 'target' in data:
            data = {**data, 'min': data['target']}
        return data

    @model_validator(mode='after')
    def validate_envelope(self):
        if self.min > self.target:
            raise ValueError("Duration min cannot exceed target")
        return self


class Position(BaseModel):
    """Where a query may be placed and for how long."""
    start: Optional[TimeBoundary] = Field(default=None, description="Boundary of the start point")
    end: Optional[TimeBoundary] = Field(default=None, description="Boundary of the end point")
    duration: Optional[TimeDuration] = Field(default=None, description="Duration envelope")


class Goal(BaseModel):
    """Recurring requirement: `quantity` of time (or occurrences) every `time`."""
    kind: GoalKind = Field(description="Atomic occurrences or splittable time")
    quantity: TimeDuration = Field(
        description="Occurrences per period (Atomic) or total time per period (Splittable)"
    )
    time: float = Field(gt=0, description="Length of the repetition period")


class TimeRestriction(BaseModel):
    """Calendar ranges expressed in the restriction's own unit (hour, weekday, month)."""
    condition: RestrictionCondition = Field(description="Allow or forbid the ranges")
    ranges: List[Tuple[float, float]] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_ranges(self):
        for start, end in self.ranges:
            if end < start:
                raise ValueError(f"Restriction range ({start}, {end}) is reversed")
        return self


class TimeRestrictions(BaseModel):
    hour: Optional[TimeRestriction] = None
    weekday: Optional[TimeRestriction] = None
    month: Optional[TimeRestriction] = None


class QueryLink(BaseModel):
    """Places a query at a distance from another query's material."""
    query_id: int = Field(description="ID of the linked query")
    potential_id: int = Field(default=0, description="Which potential of the linked query")
    split_id: Optional[int] = Field(default=None, description="Restrict to one split piece")
    origin: LinkOrigin = Field(description="Measure from the material start or end")
    distance: TimeBoundary = Field(description="Offset from the origin point")


class Need(BaseModel):
    """Consumes a resource some sibling query provides."""
    collection_name: str = Field(min_length=1)
    find: Dict[str, Any] = Field(default_factory=dict, description="Fields the provided doc must match")
    quantity: float = Field(default=1, ge=0)
    ref: str = Field(default="", description="Free-form reference for callers")

    def matches(self, provide: "Provide") -> bool:
        if provide.collection_name != self.collection_name:
            return False
        return all(provide.doc.get(key) == value for key, value in self.find.items())


class Provide(BaseModel):
    """Produces a resource; `wait` forces the provider to be placed after its consumers."""
    collection_name: str = Field(min_length=1)
    doc: Dict[str, Any] = Field(default_factory=dict)
    quantity: float = Field(default=1, ge=0)
    wait: bool = Field(default=False, description="Place only once a consumer is materialized")


class Transforms(BaseModel):
    needs: List[Need] = Field(default_factory=list)
    provides: List[Provide] = Field(default_factory=list)


class Query(BaseModel):
    """
    A single request for time.
    Includes positioning, recurrence, calendar restrictions and dependencies.
    """

    # --- Core Identity ---
    id: int = Field(description="Unique identifier for the query")
    name: str = Field(default="query", min_length=1, description="Human-readable name")

    # --- Timing ---
    position: Position = Field(default_factory=Position, description="Boundaries and duration")
    goal: Optional[Goal] = Field(default=None, description="Recurrence, if any")
    time_restrictions: Optional[TimeRestrictions] = Field(
        default=None,
        description="Calendar ranges the query is allowed or forbidden in"
    )

    # --- Dependencies ---
    links: List[QueryLink] = Field(default_factory=list)
    transforms: Optional[Transforms] = Field(default=None)

    @model_validator(mode='after')
    def validate_duration_source(self):
        """Every query must be able to tell how long it lasts."""
        position = self.position
        if self.goal is None:
            if position.duration is None and (position.start is None or position.end is None):
                raise ValueError("Query needs a duration or both start and end boundaries")
        elif self.goal.kind == GoalKind.ATOMIC and position.duration is None:
            raise ValueError("Atomic goal needs a position duration")
        return self

    @property
    def is_goal(self) -> bool:
        return self.goal is not None

    @property
    def is_splittable(self) -> bool:
        return self.goal is not None and self.goal.kind == GoalKind.SPLITTABLE

    @property
    def needs(self) -> List[Need]:
        return self.transforms.needs if self.transforms else []

    @property
    def provides(self) -> List[Provide]:
        return self.transforms.provides if self.transforms else []

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": 1,
            "name": "Deep work",
            "position": {
                "start": {"min": 0, "target": 3600000, "max": 7200000},
                "duration": {"min": 3600000, "target": 5400000}
            },
            "goal": {"kind": "Atomic", "quantity": {"min": 1, "target": 1}, "time": 86400000},
            "time_restrictions": {"hour": {"condition": "InRange", "ranges": [[9, 17]]}}
        }
    })
