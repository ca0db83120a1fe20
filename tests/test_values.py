"""Tests for immutable schedule values."""

import dataclasses
from datetime import date, datetime, time

import pytest

from shiftcycle.domain.builtin import AFTERNOON, MORNING, NIGHT, REST
from shiftcycle.domain.values import (
    PAYLOAD_TYPES,
    AdditionalShift,
    BucketKey,
    ComputedDay,
    ComputedShift,
    CycleDefinition,
    ExceptionRecord,
    ExceptionStatus,
    ExceptionType,
    MonthCacheEntry,
    OtherNote,
    ScheduleContext,
    ShiftOrigin,
    ShiftSwap,
)
from shiftcycle.errors import ConfigurationError


def test_shift_type_hours():
    assert MORNING.duration_hours == 8.0
    assert not MORNING.crosses_midnight
    assert NIGHT.crosses_midnight
    assert NIGHT.duration_hours == 8.0
    assert REST.duration_hours == 0.0
    assert not REST.crosses_midnight


def test_cycle_requires_days_and_full_rows():
    with pytest.raises(ConfigurationError):
        CycleDefinition.from_table("empty", "Empty", [MORNING], [])
    with pytest.raises(ConfigurationError):
        CycleDefinition.from_table("short", "Short", [MORNING, AFTERNOON], [[{"A"}]])
    with pytest.raises(ConfigurationError):
        CycleDefinition.from_table("none", "None", [], [[]])


def test_cycle_helpers():
    cycle = CycleDefinition.from_table("c", "C", [MORNING, REST], [[{"A"}, {"B"}], [set(), {"A", "B"}]])
    assert cycle.length_days == 2
    assert cycle.shifts_per_day == 2
    assert cycle.teams() == {"A", "B"}
    assert not cycle.is_rest_day(0)
    assert cycle.is_rest_day(1)


def test_computed_shift_defaults_and_normalization():
    shift = ComputedShift(MORNING, {"B", "A"}, exception_ids=("z", "a", "z"))
    assert (shift.start_time, shift.end_time) == (time(6, 0), time(14, 0))
    assert shift.teams_on_duty == frozenset({"A", "B"})
    assert shift.exception_ids == ("a", "z")
    assert shift.is_modified
    assert not ComputedShift(MORNING).is_modified
    assert ComputedShift(MORNING, origin=ShiftOrigin.EXCEPTION).is_modified


def test_values_are_frozen():
    day = ComputedDay(date(2025, 1, 1), [ComputedShift(MORNING, {"A"})])
    assert isinstance(day.shifts, tuple)
    with pytest.raises(dataclasses.FrozenInstanceError):
        day.date = date(2025, 1, 2)


def test_record_type_follows_payload():
    record = ExceptionRecord("x", 1, date(2025, 1, 1), ShiftSwap("B"))
    assert record.type is ExceptionType.SHIFT_SWAP
    assert record.is_active
    assert record.created_at == datetime.min
    cancelled = dataclasses.replace(record, status=ExceptionStatus.CANCELLED)
    assert not cancelled.is_active


def test_every_exception_type_has_a_payload():
    assert set(PAYLOAD_TYPES) == set(ExceptionType)
    assert PAYLOAD_TYPES[ExceptionType.OTHER] is OtherNote
    assert PAYLOAD_TYPES[ExceptionType.ADDITIONAL_SHIFT] is AdditionalShift


def test_bucket_key():
    key = BucketKey(2025, 12, ScheduleContext(user_id=3, team_id="B"))
    assert key.first_day == date(2025, 12, 1)
    assert key.last_day == date(2025, 12, 31)
    assert key.shifted(1) == BucketKey(2026, 1, key.context)
    assert key.shifted(-12).year == 2024
    assert str(key) == "2025-12[user=3,team=B]"
    assert str(BucketKey(2025, 2)) == "2025-02"
    assert BucketKey.for_date(date(2024, 2, 29)) == BucketKey(2024, 2)
    assert BucketKey(2025, 1) != BucketKey(2025, 1, ScheduleContext(user_id=1))
    with pytest.raises(ValueError):
        BucketKey(2025, 13)


def test_empty_cache_entry():
    entry = MonthCacheEntry(BucketKey(2025, 1))
    assert not entry.is_available
    assert entry.days is None
