"""Immutable value types for schedule computation.

Everything in this module is a frozen dataclass or an enum. Values are
created by providers, the generator and the merge engine and are never
mutated afterwards; a "modification" is always a new instance built with
``dataclasses.replace``. This is what makes cached schedules safe to share
between concurrent readers.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import ClassVar, Dict, FrozenSet, Iterable, Optional, Sequence, Tuple, Type, Union

from shiftcycle.errors import ConfigurationError


# ---------------------------------------------------------------------------
# Shifts, teams and cycles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ShiftType:
    """A kind of shift with its nominal working hours.

    Attributes:
        id: Stable identifier (e.g. "morning")
        name: Display name
        start_time: Nominal start
        end_time: Nominal end (may be earlier than start for night shifts)
        is_rest_marker: True only for the synthetic "no shift" slot
        description: Free text
    """

    id: str
    name: str
    start_time: time
    end_time: time
    is_rest_marker: bool = False
    description: str = ""

    @property
    def crosses_midnight(self) -> bool:
        return not self.is_rest_marker and self.end_time <= self.start_time

    @property
    def duration_hours(self) -> float:
        if self.is_rest_marker:
            return 0.0
        start = self.start_time.hour * 60 + self.start_time.minute
        end = self.end_time.hour * 60 + self.end_time.minute
        minutes = (end - start) % (24 * 60) or 24 * 60
        return minutes / 60


@dataclass(frozen=True)
class Team:
    """A work team reading a shared cycle at its own phase offset."""

    id: str
    name: str = ""
    phase_offset_days: int = 0


@dataclass(frozen=True)
class CycleDefinition:
    """
    A repeating, day-indexed rotation.

    ``slots[day][slot]`` is the set of team ids on duty in the shift type
    ``shift_types[slot]`` on cycle day ``day``. The built-in cycle carries a
    rest-marker slot listing the teams that are off; custom cycles may use
    fully empty days as rest days.

    Raises:
        ConfigurationError: If the cycle is empty or a day does not have one
            entry per shift type
    """

    cycle_id: str
    name: str
    shift_types: Tuple[ShiftType, ...]
    slots: Tuple[Tuple[FrozenSet[str], ...], ...]
    builtin: bool = False

    def __post_init__(self):
        shift_types = tuple(self.shift_types)
        slots = tuple(tuple(frozenset(teams) for teams in day) for day in self.slots)
        object.__setattr__(self, "shift_types", shift_types)
        object.__setattr__(self, "slots", slots)

        if not shift_types:
            raise ConfigurationError(f"Cycle '{self.cycle_id}' defines no shift types")
        if not slots:
            raise ConfigurationError(f"Cycle '{self.cycle_id}' has length 0")
        for index, day in enumerate(slots):
            if len(day) != len(shift_types):
                raise ConfigurationError(
                    f"Cycle '{self.cycle_id}' day {index} has {len(day)} slots, "
                    f"expected {len(shift_types)}"
                )

    @classmethod
    def from_table(
        cls,
        cycle_id: str,
        name: str,
        shift_types: Sequence[ShiftType],
        table: Sequence[Sequence[Iterable[str]]],
        builtin: bool = False,
    ) -> "CycleDefinition":
        """Build a cycle from a nested ``[day][slot] -> team ids`` table."""
        return cls(
            cycle_id=cycle_id,
            name=name,
            shift_types=tuple(shift_types),
            slots=tuple(tuple(frozenset(teams) for teams in day) for day in table),
            builtin=builtin,
        )

    @property
    def length_days(self) -> int:
        return len(self.slots)

    @property
    def shifts_per_day(self) -> int:
        return len(self.shift_types)

    def day(self, position: int) -> Tuple[FrozenSet[str], ...]:
        return self.slots[position]

    def teams(self) -> FrozenSet[str]:
        """All team ids referenced anywhere in the cycle."""
        found = set()
        for day in self.slots:
            for teams in day:
                found.update(teams)
        return frozenset(found)

    def is_rest_day(self, position: int) -> bool:
        """True if no working slot of the cycle day has a team on duty."""
        return all(
            not teams
            for shift_type, teams in zip(self.shift_types, self.slots[position])
            if not shift_type.is_rest_marker
        )


# ---------------------------------------------------------------------------
# Computed schedule
# ---------------------------------------------------------------------------


class ShiftOrigin(Enum):
    BASE = "base"
    EXCEPTION = "exception"


@dataclass(frozen=True)
class ComputedShift:
    """One shift of a computed day, with its effective hours."""

    shift_type: ShiftType
    teams_on_duty: FrozenSet[str] = frozenset()
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    origin: ShiftOrigin = ShiftOrigin.BASE
    exception_ids: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "teams_on_duty", frozenset(self.teams_on_duty))
        object.__setattr__(self, "exception_ids", tuple(sorted(set(self.exception_ids))))
        if self.start_time is None:
            object.__setattr__(self, "start_time", self.shift_type.start_time)
        if self.end_time is None:
            object.__setattr__(self, "end_time", self.shift_type.end_time)

    @property
    def shift_type_id(self) -> str:
        return self.shift_type.id

    @property
    def is_rest(self) -> bool:
        return self.shift_type.is_rest_marker

    @property
    def is_modified(self) -> bool:
        return bool(self.exception_ids) or self.origin is ShiftOrigin.EXCEPTION


@dataclass(frozen=True)
class ExceptionNote:
    """Metadata attached to a day by an OTHER exception."""

    exception_id: str
    text: str


@dataclass(frozen=True)
class ComputedDay:
    """The shifts that apply on one calendar date."""

    date: date
    shifts: Tuple[ComputedShift, ...] = ()
    notes: Tuple[ExceptionNote, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "shifts", tuple(self.shifts))
        object.__setattr__(self, "notes", tuple(self.notes))

    def working_shifts(self) -> Tuple[ComputedShift, ...]:
        return tuple(s for s in self.shifts if not s.is_rest)

    @property
    def is_work_day(self) -> bool:
        return bool(self.working_shifts())

    def shift(self, shift_type_id: str) -> Optional[ComputedShift]:
        for computed in self.shifts:
            if computed.shift_type_id == shift_type_id:
                return computed
        return None

    def teams_on_duty(self) -> FrozenSet[str]:
        teams = set()
        for computed in self.working_shifts():
            teams.update(computed.teams_on_duty)
        return frozenset(teams)

    def rest_teams(self) -> FrozenSet[str]:
        teams = set()
        for computed in self.shifts:
            if computed.is_rest:
                teams.update(computed.teams_on_duty)
        return frozenset(teams)


# ---------------------------------------------------------------------------
# Exceptions (per-user overrides)
# ---------------------------------------------------------------------------


class ExceptionType(Enum):
    SHIFT_TIME_CHANGE = "SHIFT_TIME_CHANGE"
    SHIFT_CANCELLED = "SHIFT_CANCELLED"
    ADDITIONAL_SHIFT = "ADDITIONAL_SHIFT"
    SHIFT_SWAP = "SHIFT_SWAP"
    OTHER = "OTHER"


class ExceptionStatus(Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class ShiftTimeChange:
    new_start: time
    new_end: time

    kind: ClassVar[ExceptionType] = ExceptionType.SHIFT_TIME_CHANGE


@dataclass(frozen=True)
class ShiftCancellation:
    reason: str = ""

    kind: ClassVar[ExceptionType] = ExceptionType.SHIFT_CANCELLED


@dataclass(frozen=True)
class AdditionalShift:
    start_time: time
    end_time: time
    team_id: Optional[str] = None
    name: str = "Additional"

    kind: ClassVar[ExceptionType] = ExceptionType.ADDITIONAL_SHIFT


@dataclass(frozen=True)
class ShiftSwap:
    to_team_id: str
    from_team_id: Optional[str] = None

    kind: ClassVar[ExceptionType] = ExceptionType.SHIFT_SWAP


@dataclass(frozen=True)
class OtherNote:
    text: str = ""

    kind: ClassVar[ExceptionType] = ExceptionType.OTHER


ExceptionPayload = Union[ShiftTimeChange, ShiftCancellation, AdditionalShift, ShiftSwap, OtherNote]

PAYLOAD_TYPES: Dict[ExceptionType, Type] = {
    payload.kind: payload
    for payload in (ShiftTimeChange, ShiftCancellation, AdditionalShift, ShiftSwap, OtherNote)
}


@dataclass(frozen=True)
class ExceptionRecord:
    """
    A per-user, per-date override of the base schedule.

    ``shift_type_id`` names the shift the exception applies to. When it is
    None the exception applies to every working shift of the day, except
    for ADDITIONAL_SHIFT where it names the shift type being added.

    Untargeted exceptions are meant for team views. In a crew view (no
    ``team_id``) they match every team's shifts, so an untargeted
    SHIFT_CANCELLED clears every working shift of the day.
    """

    id: str
    user_id: Optional[int]
    date: date
    payload: ExceptionPayload
    status: ExceptionStatus = ExceptionStatus.ACTIVE
    shift_type_id: Optional[str] = None
    created_at: datetime = datetime.min

    @property
    def type(self) -> ExceptionType:
        return self.payload.kind

    @property
    def is_active(self) -> bool:
        return self.status is ExceptionStatus.ACTIVE


# ---------------------------------------------------------------------------
# Cache bookkeeping
# ---------------------------------------------------------------------------


class CacheState(Enum):
    NOT_REQUESTED = "NOT_REQUESTED"
    LOADING = "LOADING"
    AVAILABLE = "AVAILABLE"
    ERROR = "ERROR"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class ScheduleContext:
    """Whose schedule a bucket holds: a user (for exceptions) and/or a team filter."""

    user_id: Optional[int] = None
    team_id: Optional[str] = None


@dataclass(frozen=True)
class BucketKey:
    """Cache key: one calendar month for one schedule context."""

    year: int
    month: int
    context: ScheduleContext = field(default_factory=ScheduleContext)

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"Invalid month {self.month}")

    @classmethod
    def for_date(cls, day: date, context: Optional[ScheduleContext] = None) -> "BucketKey":
        return cls(day.year, day.month, context or ScheduleContext())

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    @property
    def month_index(self) -> int:
        return self.year * 12 + (self.month - 1)

    def shifted(self, months: int) -> "BucketKey":
        year, month0 = divmod(self.month_index + months, 12)
        return BucketKey(year, month0 + 1, self.context)

    def __str__(self) -> str:
        parts = []
        if self.context.user_id is not None:
            parts.append(f"user={self.context.user_id}")
        if self.context.team_id is not None:
            parts.append(f"team={self.context.team_id}")
        suffix = f"[{','.join(parts)}]" if parts else ""
        return f"{self.year:04d}-{self.month:02d}{suffix}"


@dataclass(frozen=True)
class MonthCacheEntry:
    """Snapshot of one bucket's load state. ``days`` is set only when AVAILABLE."""

    key: BucketKey
    state: CacheState = CacheState.NOT_REQUESTED
    days: Optional[Tuple[ComputedDay, ...]] = None
    loaded_at: Optional[float] = None
    epoch: int = 0
    degraded: bool = False
    error: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return self.state is CacheState.AVAILABLE
