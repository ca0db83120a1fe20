"""Database initialization and utilities."""

from __future__ import annotations

import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from .builtin import DEFAULT_SHIFT_TYPES, builtin_teams
from .models import Base, ShiftTypeRow, TeamRow

logger = logging.getLogger(__name__)

DEFAULT_DB_URL = "sqlite:///shiftcycle.db"


def create_db_engine(db_url: str = DEFAULT_DB_URL, echo: bool = False):
    """Create SQLAlchemy engine."""
    return create_engine(db_url, echo=echo)


def init_database(db_url: str = DEFAULT_DB_URL, seed: bool = True) -> None:
    """Create all tables and, optionally, seed the built-in shift types and teams."""
    engine = create_db_engine(db_url)
    Base.metadata.create_all(engine)
    if seed:
        session = sessionmaker(bind=engine)()
        try:
            seed_defaults(session)
        finally:
            session.close()
    logger.info("Database initialized: %s", db_url)


def seed_defaults(session: Session) -> int:
    """
    Insert built-in shift types and teams that are not present yet.

    Returns:
        Number of rows inserted
    """
    added = 0
    for position, shift_type in enumerate(DEFAULT_SHIFT_TYPES):
        if session.get(ShiftTypeRow, shift_type.id) is None:
            session.add(
                ShiftTypeRow(
                    id=shift_type.id,
                    name=shift_type.name,
                    description=shift_type.description,
                    start_time=shift_type.start_time,
                    end_time=shift_type.end_time,
                    is_rest_marker=shift_type.is_rest_marker,
                    position=position,
                )
            )
            added += 1
    for team in builtin_teams():
        if session.get(TeamRow, team.id) is None:
            session.add(TeamRow(id=team.id, name=team.name, phase_offset_days=team.phase_offset_days))
            added += 1
    session.commit()
    return added


def get_session_factory(db_url: str = DEFAULT_DB_URL):
    """Get a session factory for the database."""
    engine = create_db_engine(db_url)
    return sessionmaker(bind=engine)


def get_session(db_url: str = DEFAULT_DB_URL) -> Session:
    """Get a new database session."""
    SessionFactory = get_session_factory(db_url)
    return SessionFactory()


def reset_database(db_url: str = DEFAULT_DB_URL) -> None:
    """Drop all tables and recreate (WARNING: deletes all data!)."""
    engine = create_db_engine(db_url)
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    logger.warning("Database reset: %s", db_url)
