"""Tests for repositories and the database-backed collaborators."""

from datetime import date, datetime, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from shiftcycle.domain.builtin import BUILTIN_CYCLE_ID, DEFAULT_ANCHOR_DATE
from shiftcycle.domain.db import get_session, get_session_factory, init_database, reset_database, seed_defaults
from shiftcycle.domain.models import CycleRow, CycleSlotRow, TurnExceptionRow
from shiftcycle.domain.repositories import (
    CycleRepository,
    ExceptionRepository,
    SqlCycleProvider,
    SqlExceptionStore,
    TeamRepository,
)
from shiftcycle.domain.values import (
    AdditionalShift,
    ExceptionRecord,
    ExceptionStatus,
    ScheduleContext,
    ShiftSwap,
    ShiftTimeChange,
)
from shiftcycle.errors import ConfigurationError, ExceptionStoreUnavailable


def _factory(session):
    return lambda: session.__class__(bind=session.get_bind())


def test_seed_defaults_is_idempotent(db_session):
    # fixture already seeded 4 shift types and 9 teams
    assert seed_defaults(db_session) == 0
    assert len(TeamRepository.get_all(db_session)) == 9


def test_builtin_provider(db_session):
    provider = SqlCycleProvider(_factory(db_session))
    cycle = provider.get_cycle_definition(ScheduleContext())
    assert cycle.cycle_id == BUILTIN_CYCLE_ID
    assert cycle.length_days == 18
    assert [st.id for st in provider.get_shift_types()] == ["morning", "afternoon", "night", "rest"]
    assert [team.id for team in provider.get_teams()][:3] == ["A", "B", "C"]
    assert provider.get_anchor_date(ScheduleContext()) == DEFAULT_ANCHOR_DATE


def test_custom_cycle_provider(db_session):
    cycle = CycleRow(id="c4", name="Four day", length_days=4, anchor_date=date(2025, 1, 1))
    cycle.slots.append(CycleSlotRow(day_index=0, shift_type_id="morning", team_ids="A;B"))
    cycle.slots.append(CycleSlotRow(day_index=1, shift_type_id="night", team_ids="C"))
    CycleRepository.create(db_session, cycle)

    provider = SqlCycleProvider(_factory(db_session), cycle_id="c4")
    definition = provider.get_cycle_definition(ScheduleContext())
    assert definition.length_days == 4
    assert definition.day(0)[0] == {"A", "B"}
    assert definition.day(1)[2] == {"C"}
    assert definition.is_rest_day(2)
    assert provider.get_anchor_date(ScheduleContext()) == date(2025, 1, 1)


def test_custom_cycle_without_anchor_uses_default(db_session):
    CycleRepository.create(db_session, CycleRow(id="c1", name="One", length_days=1))
    provider = SqlCycleProvider(_factory(db_session), cycle_id="c1", anchor_date=date(2020, 1, 1))
    assert provider.get_anchor_date(ScheduleContext()) == date(2020, 1, 1)


def test_missing_cycle_raises(db_session):
    provider = SqlCycleProvider(_factory(db_session), cycle_id="nope")
    with pytest.raises(ConfigurationError):
        provider.get_cycle_definition(ScheduleContext())


def test_cycle_with_unknown_shift_type_raises(db_session):
    cycle = CycleRow(id="bad", name="Bad", length_days=2)
    cycle.slots.append(CycleSlotRow(day_index=0, shift_type_id="brunch", team_ids="A"))
    db_session.add(cycle)
    db_session.commit()
    with pytest.raises(ConfigurationError):
        SqlCycleProvider(_factory(db_session), cycle_id="bad").get_cycle_definition(ScheduleContext())


def test_delete_cycle(db_session):
    CycleRepository.create(db_session, CycleRow(id="c1", name="One", length_days=1))
    assert CycleRepository.delete(db_session, "c1")
    assert not CycleRepository.delete(db_session, "c1")


def test_exception_store_returns_active_records_in_range(db_session):
    records = [
        ExceptionRecord(
            "tc", 1, date(2025, 3, 3), ShiftTimeChange(time(7, 0), time(15, 0)),
            shift_type_id="morning", created_at=datetime(2025, 2, 1, 8, 0),
        ),
        ExceptionRecord("sw", 1, date(2025, 3, 4), ShiftSwap("B", "A"), created_at=datetime(2025, 2, 1, 9, 0)),
        ExceptionRecord("ad", 1, date(2025, 4, 1), AdditionalShift(time(1, 0), time(2, 0))),
        ExceptionRecord("other-user", 2, date(2025, 3, 3), ShiftSwap("C")),
        ExceptionRecord(
            "cancelled", 1, date(2025, 3, 5), ShiftSwap("C"), status=ExceptionStatus.CANCELLED,
        ),
    ]
    ExceptionRepository.bulk_create(db_session, [ExceptionRepository.from_record(r) for r in records])

    store = SqlExceptionStore(_factory(db_session))
    found = store.get_active_exceptions(1, date(2025, 3, 1), date(2025, 3, 31))
    assert [r.id for r in found] == ["tc", "sw"]
    assert found[0] == records[0]
    assert found[1].payload == ShiftSwap("B", "A")

    assert store.get_active_exceptions(None, date(2025, 3, 1), date(2025, 3, 31)) == []


def test_cancel_exception(db_session):
    record = ExceptionRecord("sw", 1, date(2025, 3, 4), ShiftSwap("B"))
    ExceptionRepository.create(db_session, ExceptionRepository.from_record(record))

    assert ExceptionRepository.cancel(db_session, "sw")
    assert not ExceptionRepository.cancel(db_session, "missing")
    row = ExceptionRepository.get_by_id(db_session, "sw")
    assert row.status == "CANCELLED"
    assert row.modified_at is not None


def test_malformed_rows_are_skipped(db_session):
    db_session.add(TurnExceptionRow(id="no-times", user_id=1, date=date(2025, 3, 3), exception_type="SHIFT_TIME_CHANGE"))
    db_session.add(TurnExceptionRow(id="bad-type", user_id=1, date=date(2025, 3, 3), exception_type="VACATION"))
    db_session.commit()

    store = SqlExceptionStore(_factory(db_session))
    assert store.get_active_exceptions(1, date(2025, 3, 1), date(2025, 3, 31)) == []


def test_database_errors_become_store_unavailable():
    engine = create_engine("sqlite:///:memory:")  # no tables
    store = SqlExceptionStore(sessionmaker(bind=engine))
    with pytest.raises(ExceptionStoreUnavailable):
        store.get_active_exceptions(1, date(2025, 3, 1), date(2025, 3, 31))


def test_set_team_offset(db_session):
    TeamRepository.set_offset(db_session, "A", 4)
    TeamRepository.set_offset(db_session, "Z", 2)
    assert TeamRepository.to_value(TeamRepository.get_by_id(db_session, "A")).phase_offset_days == 4
    assert TeamRepository.get_by_id(db_session, "Z").name == "Team Z"


def test_init_and_reset_database(db_url):
    init_database(db_url)
    session = get_session(db_url)
    try:
        assert len(TeamRepository.get_all(session)) == 9
    finally:
        session.close()

    reset_database(db_url)
    session = get_session_factory(db_url)()
    try:
        assert TeamRepository.get_all(session) == []
    finally:
        session.close()
