"""Tests for merging exceptions into base schedules."""

from datetime import datetime, time, timedelta

import pytest

from shiftcycle.domain.builtin import DEFAULT_ANCHOR_DATE, DEFAULT_SHIFT_TYPES, builtin_cycle
from shiftcycle.domain.values import (
    AdditionalShift,
    ExceptionRecord,
    ExceptionStatus,
    OtherNote,
    ShiftCancellation,
    ShiftOrigin,
    ShiftSwap,
    ShiftTimeChange,
    Team,
)
from shiftcycle.engine.generator import ScheduleGenerator
from shiftcycle.engine.merge import ADDITIONAL_SHIFT_TYPE_ID, ExceptionMergeEngine

DAY0 = DEFAULT_ANCHOR_DATE
T1 = datetime(2018, 10, 1, 9, 0)
T2 = datetime(2018, 10, 2, 9, 0)


def _team_a_days(count=1):
    """Team A works mornings on cycle days 0-3 and rests on day 4."""
    return ScheduleGenerator().generate(
        DAY0, DAY0 + timedelta(days=count - 1), builtin_cycle(), DEFAULT_ANCHOR_DATE, Team("A")
    )


def _crew_days(count=1):
    return ScheduleGenerator().generate(DAY0, DAY0 + timedelta(days=count - 1), builtin_cycle(), DEFAULT_ANCHOR_DATE)


def _record(record_id, payload, day=DAY0, shift_type_id=None, created_at=T1, status=ExceptionStatus.ACTIVE):
    return ExceptionRecord(
        id=record_id,
        user_id=1,
        date=day,
        payload=payload,
        status=status,
        shift_type_id=shift_type_id,
        created_at=created_at,
    )


@pytest.fixture
def engine():
    return ExceptionMergeEngine(DEFAULT_SHIFT_TYPES)


def test_later_cancellation_beats_earlier_time_change(engine):
    change = _record("tc", ShiftTimeChange(time(7, 0), time(15, 0)), shift_type_id="morning", created_at=T1)
    cancel = _record("cx", ShiftCancellation("sick"), shift_type_id="morning", created_at=T2)
    (day,) = engine.merge(_team_a_days(), [change, cancel])
    assert day.shifts == ()


def test_later_time_change_beats_earlier_cancellation(engine):
    cancel = _record("cx", ShiftCancellation(), shift_type_id="morning", created_at=T1)
    change = _record("tc", ShiftTimeChange(time(7, 0), time(15, 0)), shift_type_id="morning", created_at=T2)
    (day,) = engine.merge(_team_a_days(), [cancel, change])
    shift = day.shift("morning")
    assert (shift.start_time, shift.end_time) == (time(7, 0), time(15, 0))
    assert shift.exception_ids == ("tc",)
    assert shift.is_modified


def test_equal_timestamps_go_to_higher_id(engine):
    first = _record("a", ShiftTimeChange(time(5, 0), time(13, 0)), shift_type_id="morning")
    second = _record("b", ShiftTimeChange(time(7, 0), time(15, 0)), shift_type_id="morning")
    for records in ([first, second], [second, first]):
        (day,) = engine.merge(_team_a_days(), records)
        assert day.shift("morning").start_time == time(7, 0)


def test_merge_is_idempotent(engine):
    records = [
        _record("cx", ShiftCancellation(), shift_type_id="morning"),
        _record("tc", ShiftTimeChange(time(13, 0), time(21, 0)), shift_type_id="afternoon"),
        _record("sw", ShiftSwap(to_team_id="G", from_team_id="E"), shift_type_id="night"),
        _record("ad", AdditionalShift(time(9, 0), time(12, 0), team_id="H", name="Training")),
        _record("nt", OtherNote("inventory day")),
    ]
    once = engine.merge(_crew_days(2), records)
    twice = engine.merge(once, records)
    assert twice == once


def test_cancellation_without_target_clears_whole_day(engine):
    (day,) = engine.merge(_crew_days(), [_record("cx", ShiftCancellation())])
    assert [shift.shift_type_id for shift in day.shifts] == ["rest"]
    assert not day.is_work_day


def test_swap_replaces_team(engine):
    swap = _record("sw", ShiftSwap(to_team_id="C", from_team_id="A"), shift_type_id="morning")
    (day,) = engine.merge(_crew_days(), [swap])
    assert day.shift("morning").teams_on_duty == {"B", "C"}
    assert day.shift("morning").exception_ids == ("sw",)
    assert day.shift("afternoon").exception_ids == ()


def test_swap_without_source_replaces_all_teams(engine):
    swap = _record("sw", ShiftSwap(to_team_id="Z"), shift_type_id="night")
    (day,) = engine.merge(_crew_days(), [swap])
    assert day.shift("night").teams_on_duty == {"Z"}


def test_additional_shift_is_appended(engine):
    extra = _record("ad", AdditionalShift(time(18, 0), time(23, 0), team_id="C", name="Overtime"))
    (day,) = engine.merge(_team_a_days(), [extra])

    assert [shift.shift_type_id for shift in day.shifts] == ["morning", ADDITIONAL_SHIFT_TYPE_ID]
    added = day.shift(ADDITIONAL_SHIFT_TYPE_ID)
    assert added.shift_type.name == "Overtime"
    assert added.teams_on_duty == {"C"}
    assert added.origin is ShiftOrigin.EXCEPTION
    assert (added.start_time, added.end_time) == (time(18, 0), time(23, 0))


def test_additional_shift_of_known_type_uses_merge_team(engine):
    extra = _record("ad", AdditionalShift(time(22, 0), time(6, 0)), shift_type_id="night")
    (day,) = engine.merge(_team_a_days(), [extra], team_id="A")
    night = day.shift("night")
    assert night.shift_type.name == "Night"
    assert night.teams_on_duty == {"A"}


def test_notes_are_attached_in_order(engine):
    notes = [
        _record("n2", OtherNote("second"), created_at=T2),
        _record("n1", OtherNote("first"), created_at=T1),
    ]
    (day,) = engine.merge(_team_a_days(), notes)
    assert [note.text for note in day.notes] == ["first", "second"]
    assert day.shift("morning").exception_ids == ()


def test_cancelling_missing_shift_warns_and_keeps_day(engine):
    base = _team_a_days(5)
    rest_day = base[4]
    assert not rest_day.is_work_day

    report = engine.merge_with_report(base, [_record("cx", ShiftCancellation(), day=rest_day.date)])
    assert report.days[4] == rest_day
    assert [w.exception_id for w in report.warnings] == ["cx"]


def test_swapping_missing_shift_is_dropped(engine):
    swap = _record("sw", ShiftSwap(to_team_id="B"), shift_type_id="night")
    report = engine.merge_with_report(_team_a_days(), [swap])
    assert report.days == tuple(_team_a_days())
    assert len(report.warnings) == 1


def test_time_change_on_missing_shift_adds_it(engine):
    base = _team_a_days(5)
    change = _record("tc", ShiftTimeChange(time(10, 0), time(18, 0)), day=base[4].date)
    report = engine.merge_with_report(base, [change], team_id="A")

    (added,) = report.days[4].shifts
    assert added.shift_type_id == ADDITIONAL_SHIFT_TYPE_ID
    assert added.teams_on_duty == {"A"}
    assert added.origin is ShiftOrigin.EXCEPTION
    assert len(report.warnings) == 1


def test_inactive_and_out_of_range_records_are_ignored(engine):
    base = _team_a_days(2)
    records = [
        _record("old", ShiftCancellation(), status=ExceptionStatus.CANCELLED),
        _record("far", ShiftCancellation(), day=DAY0 + timedelta(days=30)),
    ]
    report = engine.merge_with_report(base, records)
    assert list(report.days) == base
    assert report.warnings == ()


def test_merge_does_not_touch_inputs(engine):
    base = _team_a_days()
    snapshot = list(base)
    engine.merge(base, [_record("cx", ShiftCancellation())])
    assert base == snapshot
