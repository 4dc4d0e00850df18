"""
Schedule data models for the pressure scheduler.

This module defines the 'Output' of the engine and its horizon:
concrete allocations of time committed to a query.
"""

from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator

from .potentiality import Range


class SchedulerConfig(BaseModel):
    """The bounded horizon every allocation must fit in (timestamps in ms)."""
    start_date: float = Field(description="First instant of the horizon")
    end_date: float = Field(description="Last instant of the horizon")

    @model_validator(mode='after')
    def validate_horizon(self):
        if self.end_date <= self.start_date:
            raise ValueError("Horizon end_date must be strictly after start_date")
        return self

    @property
    def horizon(self) -> Range:
        return Range(start=self.start_date, end=self.end_date)


class Material(BaseModel):
    """
    A committed block of time for a query.
    Materials are immutable once appended to a schedule.
    """

    query_id: int = Field(description="ID of the query this block belongs to")
    potential_id: int = Field(default=0, description="Goal repetition index")
    split_id: Optional[int] = Field(
        default=None,
        description="Piece index when a splittable potential is spread over several blocks"
    )
    start: float
    end: float

    model_config = ConfigDict(frozen=True, json_schema_extra={
        "example": {
            "query_id": 2,
            "potential_id": 0,
            "split_id": 1,
            "start": 1800000,
            "end": 3600000
        }
    })

    @model_validator(mode='after')
    def validate_bounds(self):
        if self.end < self.start:
            raise ValueError("Material end cannot be before its start")
        return self

    @property
    def material_id(self) -> int:
        return self.potential_id

    @property
    def length(self) -> float:
        return self.end - self.start

    def to_range(self) -> Range:
        return Range(start=self.start, end=self.end)
