"""Repository classes for data access, and the collaborators built on them."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shiftcycle.engine.base import CycleProvider, ExceptionStore
from shiftcycle.errors import ConfigurationError, ExceptionStoreUnavailable
from shiftcycle.services.validation import validate_shift_types

from .builtin import BUILTIN_CYCLE_ID, DEFAULT_ANCHOR_DATE, DEFAULT_SHIFT_TYPES, builtin_cycle, builtin_teams
from .models import CycleRow, CycleSlotRow, ShiftTypeRow, TeamRow, TurnExceptionRow
from .values import (
    AdditionalShift,
    CycleDefinition,
    ExceptionRecord,
    ExceptionStatus,
    ExceptionType,
    OtherNote,
    ScheduleContext,
    ShiftCancellation,
    ShiftSwap,
    ShiftTimeChange,
    ShiftType,
    Team,
)

logger = logging.getLogger(__name__)


def split_team_ids(value: Optional[str]) -> List[str]:
    """Parse a semicolon-separated team list ("A;B")."""
    if not value:
        return []
    return [part.strip() for part in value.split(";") if part.strip()]


class ShiftTypeRepository:
    """Repository for shift type data access."""

    @staticmethod
    def get_all(session: Session) -> List[ShiftTypeRow]:
        """Get all shift types in slot order."""
        return session.query(ShiftTypeRow).order_by(ShiftTypeRow.position, ShiftTypeRow.id).all()

    @staticmethod
    def to_value(row: ShiftTypeRow) -> ShiftType:
        return ShiftType(
            id=row.id,
            name=row.name,
            start_time=row.start_time,
            end_time=row.end_time,
            is_rest_marker=bool(row.is_rest_marker),
            description=row.description or "",
        )


class TeamRepository:
    """Repository for team data access."""

    @staticmethod
    def get_all(session: Session) -> List[TeamRow]:
        """Get all teams."""
        return session.query(TeamRow).order_by(TeamRow.id).all()

    @staticmethod
    def get_by_id(session: Session, team_id: str) -> Optional[TeamRow]:
        """Get team by ID."""
        return session.query(TeamRow).filter(TeamRow.id == team_id).first()

    @staticmethod
    def set_offset(session: Session, team_id: str, phase_offset_days: int) -> TeamRow:
        """Create or update a team's phase offset."""
        team = TeamRepository.get_by_id(session, team_id)
        if team is None:
            team = TeamRow(id=team_id, name=f"Team {team_id}")
            session.add(team)
        team.phase_offset_days = phase_offset_days
        session.commit()
        return team

    @staticmethod
    def to_value(row: TeamRow) -> Team:
        return Team(id=row.id, name=row.name or "", phase_offset_days=row.phase_offset_days or 0)


class CycleRepository:
    """Repository for custom cycle data access."""

    @staticmethod
    def get_all(session: Session) -> List[CycleRow]:
        """Get all custom cycles."""
        return session.query(CycleRow).order_by(CycleRow.id).all()

    @staticmethod
    def get_by_id(session: Session, cycle_id: str) -> Optional[CycleRow]:
        """Get custom cycle by ID."""
        return session.query(CycleRow).filter(CycleRow.id == cycle_id).first()

    @staticmethod
    def create(session: Session, cycle: CycleRow) -> CycleRow:
        """Create a new custom cycle (with its slots)."""
        session.add(cycle)
        session.commit()
        session.refresh(cycle)
        return cycle

    @staticmethod
    def delete(session: Session, cycle_id: str) -> bool:
        """Delete a custom cycle and its slots. Returns False if it did not exist."""
        cycle = CycleRepository.get_by_id(session, cycle_id)
        if cycle is None:
            return False
        session.delete(cycle)
        session.commit()
        return True

    @staticmethod
    def to_definition(row: CycleRow, shift_types: List[ShiftType]) -> CycleDefinition:
        """
        Build an immutable CycleDefinition from stored rows.

        Slots are laid out in the order of ``shift_types``; slots that are
        not stored are empty (no team on duty).

        Raises:
            ConfigurationError: If the cycle is empty or references an
                unknown shift type or a day outside its length
        """
        if not row.length_days or row.length_days <= 0:
            raise ConfigurationError(f"Cycle '{row.id}' has length {row.length_days}")

        columns = {st.id: index for index, st in enumerate(shift_types)}
        table = [[set() for _ in shift_types] for _ in range(row.length_days)]
        for slot in row.slots:
            if slot.shift_type_id not in columns:
                raise ConfigurationError(f"Cycle '{row.id}' uses unknown shift type '{slot.shift_type_id}'")
            if not 0 <= slot.day_index < row.length_days:
                raise ConfigurationError(f"Cycle '{row.id}' has a slot on day {slot.day_index} outside its length")
            table[slot.day_index][columns[slot.shift_type_id]].update(split_team_ids(slot.team_ids))

        return CycleDefinition.from_table(row.id, row.name, shift_types, table)


class ExceptionRepository:
    """Repository for schedule exception data access."""

    @staticmethod
    def get_by_id(session: Session, exception_id: str) -> Optional[TurnExceptionRow]:
        """Get exception by ID."""
        return session.query(TurnExceptionRow).filter(TurnExceptionRow.id == exception_id).first()

    @staticmethod
    def get_active_for_user(session: Session, user_id: int, start: date, end: date) -> List[TurnExceptionRow]:
        """Get ACTIVE exceptions of a user within an inclusive date range."""
        return (
            session.query(TurnExceptionRow)
            .filter(
                TurnExceptionRow.user_id == user_id,
                TurnExceptionRow.date >= start,
                TurnExceptionRow.date <= end,
                TurnExceptionRow.status == ExceptionStatus.ACTIVE.value,
            )
            .order_by(TurnExceptionRow.date, TurnExceptionRow.created_at, TurnExceptionRow.id)
            .all()
        )

    @staticmethod
    def create(session: Session, exception: TurnExceptionRow) -> TurnExceptionRow:
        """Create a new exception."""
        session.add(exception)
        session.commit()
        session.refresh(exception)
        return exception

    @staticmethod
    def bulk_create(session: Session, exceptions: List[TurnExceptionRow]) -> None:
        """Create multiple exceptions."""
        session.add_all(exceptions)
        session.commit()

    @staticmethod
    def cancel(session: Session, exception_id: str) -> bool:
        """Mark an exception CANCELLED. Returns False if it does not exist."""
        row = ExceptionRepository.get_by_id(session, exception_id)
        if row is None:
            return False
        row.status = ExceptionStatus.CANCELLED.value
        row.modified_at = datetime.utcnow()
        session.commit()
        return True

    @staticmethod
    def to_record(row: TurnExceptionRow) -> Optional[ExceptionRecord]:
        """Convert a row to an ExceptionRecord; None (with a warning) if the row is malformed."""
        try:
            exception_type = ExceptionType(row.exception_type)
            status = ExceptionStatus(row.status)
        except ValueError:
            logger.warning("Skipping exception %s: unknown type/status %s/%s", row.id, row.exception_type, row.status)
            return None

        if exception_type is ExceptionType.SHIFT_TIME_CHANGE:
            if row.new_start is None or row.new_end is None:
                logger.warning("Skipping exception %s: time change without times", row.id)
                return None
            payload = ShiftTimeChange(row.new_start, row.new_end)
        elif exception_type is ExceptionType.ADDITIONAL_SHIFT:
            if row.new_start is None or row.new_end is None:
                logger.warning("Skipping exception %s: additional shift without times", row.id)
                return None
            payload = AdditionalShift(row.new_start, row.new_end, team_id=row.team_id)
        elif exception_type is ExceptionType.SHIFT_SWAP:
            if not row.team_id:
                logger.warning("Skipping exception %s: swap without target team", row.id)
                return None
            payload = ShiftSwap(to_team_id=row.team_id, from_team_id=row.from_team_id)
        elif exception_type is ExceptionType.SHIFT_CANCELLED:
            payload = ShiftCancellation(reason=row.notes or "")
        else:
            payload = OtherNote(text=row.notes or "")

        return ExceptionRecord(
            id=row.id,
            user_id=row.user_id,
            date=row.date,
            payload=payload,
            status=status,
            shift_type_id=row.shift_type_id,
            created_at=row.created_at or datetime.min,
        )

    @staticmethod
    def from_record(record: ExceptionRecord) -> TurnExceptionRow:
        """Convert an ExceptionRecord to a new row."""
        row = TurnExceptionRow(
            id=record.id,
            user_id=record.user_id,
            date=record.date,
            exception_type=record.type.value,
            status=record.status.value,
            shift_type_id=record.shift_type_id,
            created_at=record.created_at if record.created_at != datetime.min else datetime.utcnow(),
        )
        payload = record.payload
        if isinstance(payload, ShiftTimeChange):
            row.new_start, row.new_end = payload.new_start, payload.new_end
        elif isinstance(payload, AdditionalShift):
            row.new_start, row.new_end, row.team_id = payload.start_time, payload.end_time, payload.team_id
        elif isinstance(payload, ShiftSwap):
            row.team_id, row.from_team_id = payload.to_team_id, payload.from_team_id
        elif isinstance(payload, ShiftCancellation):
            row.notes = payload.reason or None
        elif isinstance(payload, OtherNote):
            row.notes = payload.text or None
        return row


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class SqlCycleProvider(CycleProvider):
    """
    CycleProvider reading teams, shift types and custom cycles from the database.

    Empty team / shift type tables fall back to the built-in defaults.

    Args:
        session_factory: Callable returning a new Session
        cycle_id: Cycle to serve; BUILTIN_CYCLE_ID for the built-in rotation
        anchor_date: Anchor used unless a custom cycle stores its own
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        cycle_id: str = BUILTIN_CYCLE_ID,
        anchor_date: date = DEFAULT_ANCHOR_DATE,
    ):
        self.session_factory = session_factory
        self.cycle_id = cycle_id
        self.anchor_date = anchor_date

    def get_cycle_definition(self, context: ScheduleContext) -> CycleDefinition:
        if self.cycle_id == BUILTIN_CYCLE_ID:
            return builtin_cycle()
        session = self.session_factory()
        try:
            row = CycleRepository.get_by_id(session, self.cycle_id)
            if row is None:
                raise ConfigurationError(f"Cycle '{self.cycle_id}' not found")
            return CycleRepository.to_definition(row, self._shift_types(session))
        finally:
            session.close()

    def get_teams(self) -> List[Team]:
        session = self.session_factory()
        try:
            rows = TeamRepository.get_all(session)
            return [TeamRepository.to_value(row) for row in rows] or builtin_teams()
        finally:
            session.close()

    def get_shift_types(self) -> List[ShiftType]:
        session = self.session_factory()
        try:
            return self._shift_types(session)
        finally:
            session.close()

    def get_anchor_date(self, context: ScheduleContext) -> date:
        if self.cycle_id == BUILTIN_CYCLE_ID:
            return self.anchor_date
        session = self.session_factory()
        try:
            row = CycleRepository.get_by_id(session, self.cycle_id)
            return row.anchor_date if row is not None and row.anchor_date else self.anchor_date
        finally:
            session.close()

    @staticmethod
    def _shift_types(session: Session) -> List[ShiftType]:
        rows = ShiftTypeRepository.get_all(session)
        return validate_shift_types(ShiftTypeRepository.to_value(row) for row in rows) or list(DEFAULT_SHIFT_TYPES)


class SqlExceptionStore(ExceptionStore):
    """ExceptionStore backed by the ``turn_exceptions`` table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_active_exceptions(self, user_id: Optional[int], start_date: date, end_date: date) -> List[ExceptionRecord]:
        if user_id is None:
            return []
        try:
            session = self.session_factory()
            try:
                rows = ExceptionRepository.get_active_for_user(session, user_id, start_date, end_date)
                records = [ExceptionRepository.to_record(row) for row in rows]
            finally:
                session.close()
        except SQLAlchemyError as e:
            raise ExceptionStoreUnavailable(str(e)) from e
        return [record for record in records if record is not None]


class StaticCycleProvider(CycleProvider):
    """CycleProvider over fixed, in-memory configuration."""

    def __init__(
        self,
        cycle: Optional[CycleDefinition] = None,
        teams: Optional[Iterable[Team]] = None,
        anchor_date: date = DEFAULT_ANCHOR_DATE,
        shift_types: Optional[Iterable[ShiftType]] = None,
    ):
        self.cycle = cycle or builtin_cycle()
        self.teams = list(teams) if teams is not None else builtin_teams()
        self.anchor_date = anchor_date
        self.shift_types = list(shift_types) if shift_types is not None else list(self.cycle.shift_types)

    def get_cycle_definition(self, context: ScheduleContext) -> CycleDefinition:
        return self.cycle

    def get_teams(self) -> List[Team]:
        return list(self.teams)

    def get_shift_types(self) -> List[ShiftType]:
        return list(self.shift_types)

    def get_anchor_date(self, context: ScheduleContext) -> date:
        return self.anchor_date


class InMemoryExceptionStore(ExceptionStore):
    """ExceptionStore over a list of records, grouped by user."""

    def __init__(self, records: Iterable[ExceptionRecord] = ()):
        self._by_user: Dict[Optional[int], List[ExceptionRecord]] = defaultdict(list)
        for record in records:
            self.add(record)

    def add(self, record: ExceptionRecord) -> None:
        self._by_user[record.user_id].append(record)

    def get_active_exceptions(self, user_id: Optional[int], start_date: date, end_date: date) -> List[ExceptionRecord]:
        return sorted(
            (
                record
                for record in self._by_user.get(user_id, [])
                if record.is_active and start_date <= record.date <= end_date
            ),
            key=lambda record: (record.date, record.created_at, record.id),
        )
