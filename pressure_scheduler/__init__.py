"""
Pressure scheduler package.

Public entry point is `schedule(config, queries)`; `PressureScheduler` exposes
the round-by-round loop and `schedule_with_feedback` the refinement driver.
"""

from .engine import PressureScheduler, schedule
from .errors import (
    ConflictError,
    InvalidInputError,
    RefinementExhaustedError,
    SchedulingError,
    UnsatisfiableNeedError,
)
from .refine import QueryDetail, schedule_with_feedback
from .state import Conflict, Converged, Progressing, SchedulerState, Snapshot
from .transforms import TransformStateManager, open_state_manager

__all__ = [
    # --- Entry Points ---
    "PressureScheduler",
    "schedule",
    "schedule_with_feedback",
    "QueryDetail",

    # --- Outcomes & State ---
    "Conflict",
    "Converged",
    "Progressing",
    "SchedulerState",
    "Snapshot",

    # --- Collaborators ---
    "TransformStateManager",
    "open_state_manager",

    # --- Errors ---
    "ConflictError",
    "InvalidInputError",
    "RefinementExhaustedError",
    "SchedulingError",
    "UnsatisfiableNeedError",
]
