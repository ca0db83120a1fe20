"""Domain values, built-in configuration and database models.

Repositories live in ``shiftcycle.domain.repositories`` and are imported
from there directly.
"""

from .builtin import BUILTIN_CYCLE_ID, DEFAULT_ANCHOR_DATE, builtin_cycle, builtin_teams
from .models import Base, CycleRow, CycleSlotRow, ShiftTypeRow, TeamRow, TurnExceptionRow
from .values import (
    BucketKey,
    CacheState,
    ComputedDay,
    ComputedShift,
    CycleDefinition,
    ExceptionRecord,
    ExceptionStatus,
    ExceptionType,
    MonthCacheEntry,
    ScheduleContext,
    ShiftType,
    Team,
)

__all__ = [
    "BUILTIN_CYCLE_ID",
    "DEFAULT_ANCHOR_DATE",
    "builtin_cycle",
    "builtin_teams",
    "Base",
    "CycleRow",
    "CycleSlotRow",
    "ShiftTypeRow",
    "TeamRow",
    "TurnExceptionRow",
    "BucketKey",
    "CacheState",
    "ComputedDay",
    "ComputedShift",
    "CycleDefinition",
    "ExceptionRecord",
    "ExceptionStatus",
    "ExceptionType",
    "MonthCacheEntry",
    "ScheduleContext",
    "ShiftType",
    "Team",
]
