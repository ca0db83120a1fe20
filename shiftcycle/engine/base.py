"""Collaborator contracts consumed and exposed by the schedule engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from shiftcycle.domain.values import (
    BucketKey,
    CacheState,
    CycleDefinition,
    ExceptionRecord,
    MonthCacheEntry,
    ScheduleContext,
    ShiftType,
    Team,
)


class CycleProvider(ABC):
    """
    Source of the rotation configuration.

    Implementations may be plain (blocking) or ``async def``; the cache runs
    blocking implementations on its worker pool.
    """

    @abstractmethod
    def get_cycle_definition(self, context: ScheduleContext) -> CycleDefinition:
        """
        Return the cycle that applies to a schedule context.

        Raises:
            ConfigurationError: If the configured cycle is missing or invalid
        """
        pass

    @abstractmethod
    def get_teams(self) -> List[Team]:
        """Return all known teams with their phase offsets."""
        pass

    @abstractmethod
    def get_shift_types(self) -> List[ShiftType]:
        """Return all known shift types."""
        pass

    @abstractmethod
    def get_anchor_date(self, context: ScheduleContext) -> date:
        """Return the date on which cycle day 0 falls for a context."""
        pass


class ExceptionStore(ABC):
    """Read access to per-user schedule overrides."""

    @abstractmethod
    def get_active_exceptions(
        self,
        user_id: Optional[int],
        start_date: date,
        end_date: date,
    ) -> List[ExceptionRecord]:
        """
        Return ACTIVE exceptions of a user within an inclusive date range.

        Raises:
            ExceptionStoreUnavailable: If the store cannot be queried
        """
        pass


class DataAvailabilityCallback:
    """
    Subscriber interface for cache state changes.

    Subclass and override the hooks of interest; register with
    ``ScheduleCache.subscribe`` and remove with ``ScheduleCache.unsubscribe``.
    """

    def on_state_changed(self, key: BucketKey, state: CacheState, entry: MonthCacheEntry) -> None:
        pass

    def on_loading_progress(self, key: BucketKey, percent: int) -> None:
        pass

    def on_warning(self, key: BucketKey, message: str) -> None:
        pass
