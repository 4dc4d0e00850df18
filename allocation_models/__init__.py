"""
Data models package for the pressure scheduler.

This package exports the three layers of the data architecture:
1. Demand (Query and its position, goal, restrictions, links, transforms)
2. Engine (Range, PressureChunk, PotRange, Potentiality)
3. Output (Material, SchedulerConfig)
"""

from .query import (
    Goal,
    GoalKind,
    LinkOrigin,
    Need,
    Position,
    Provide,
    Query,
    QueryLink,
    RestrictionCondition,
    TimeBoundary,
    TimeDuration,
    TimeRestriction,
    TimeRestrictions,
    Transforms,
)

from .potentiality import (
    PotRange,
    PotRangeKind,
    Potentiality,
    PressureChunk,
    Range,
)

from .schedule import (
    Material,
    SchedulerConfig,
)

__all__ = [
    # --- Demand Models ---
    "Goal",
    "GoalKind",
    "LinkOrigin",
    "Need",
    "Position",
    "Provide",
    "Query",
    "QueryLink",
    "RestrictionCondition",
    "TimeBoundary",
    "TimeDuration",
    "TimeRestriction",
    "TimeRestrictions",
    "Transforms",

    # --- Engine Models ---
    "PotRange",
    "PotRangeKind",
    "Potentiality",
    "PressureChunk",
    "Range",

    # --- Output Models ---
    "Material",
    "SchedulerConfig",
]
