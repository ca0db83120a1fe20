"""SQLAlchemy models for cycles, teams, shift types and schedule exceptions."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class ShiftTypeRow(Base):
    """Shift type with nominal start/end times."""

    __tablename__ = "shift_types"

    id = Column(String(40), primary_key=True)
    name = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_rest_marker = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=False, default=0)  # display / slot order

    def __repr__(self) -> str:
        return f"<ShiftTypeRow(id='{self.id}', {self.start_time}-{self.end_time})>"


class TeamRow(Base):
    """Team and its phase offset within the shared cycle."""

    __tablename__ = "teams"

    id = Column(String(20), primary_key=True)
    name = Column(String(100), nullable=False, default="")
    phase_offset_days = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<TeamRow(id='{self.id}', offset={self.phase_offset_days})>"


class CycleRow(Base):
    """User-defined (custom) rotation cycle."""

    __tablename__ = "cycles"

    id = Column(String(40), primary_key=True)
    name = Column(String(100), nullable=False)
    length_days = Column(Integer, nullable=False)
    anchor_date = Column(Date, nullable=True)  # falls back to the configured anchor
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    slots = relationship("CycleSlotRow", back_populates="cycle", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<CycleRow(id='{self.id}', length={self.length_days})>"


class CycleSlotRow(Base):
    """Teams on duty for one shift type on one cycle day."""

    __tablename__ = "cycle_slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cycle_id = Column(String(40), ForeignKey("cycles.id"), nullable=False)
    day_index = Column(Integer, nullable=False)  # 0-based position in the cycle
    shift_type_id = Column(String(40), ForeignKey("shift_types.id"), nullable=False)
    team_ids = Column(String(255), nullable=False, default="")  # Semicolon-separated

    # Relationships
    cycle = relationship("CycleRow", back_populates="slots")

    def __repr__(self) -> str:
        return f"<CycleSlotRow(cycle='{self.cycle_id}', day={self.day_index}, shift='{self.shift_type_id}')>"


class TurnExceptionRow(Base):
    """Per-user override of the generated schedule on one date."""

    __tablename__ = "turn_exceptions"
    __table_args__ = (
        Index("ix_turn_exceptions_user_date", "user_id", "date"),
        Index("ix_turn_exceptions_date_type", "date", "exception_type"),
    )

    id = Column(String(64), primary_key=True)
    user_id = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)
    exception_type = Column(String(30), nullable=False)  # ExceptionType value
    status = Column(String(20), nullable=False, default="ACTIVE")  # ACTIVE, CANCELLED
    shift_type_id = Column(String(40), nullable=True)  # None: whole day

    # Type-specific payload
    new_start = Column(Time, nullable=True)
    new_end = Column(Time, nullable=True)
    team_id = Column(String(20), nullable=True)  # swap target / additional shift team
    from_team_id = Column(String(20), nullable=True)  # swap source
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    modified_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<TurnExceptionRow(id='{self.id}', user={self.user_id}, date={self.date}, "
            f"type={self.exception_type}, status={self.status})>"
        )
