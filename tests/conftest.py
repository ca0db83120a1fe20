"""Pytest configuration and shared fixtures."""

from datetime import date, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from shiftcycle.domain.db import seed_defaults
from shiftcycle.domain.models import Base
from shiftcycle.domain.values import CycleDefinition, ShiftType, Team


def pytest_configure(config):
    """Configure pytest."""
    # Add custom markers
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (deselect with '-m \"not integration\"')"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


DAY_SHIFT = ShiftType("day", "Day", time(8, 0), time(16, 0))


@pytest.fixture
def anchor():
    return date(2025, 1, 6)


@pytest.fixture
def abc_cycle():
    """Six-day, one-shift cycle: A, B, C, A, B, C."""
    return CycleDefinition.from_table(
        "abc",
        "ABC",
        [DAY_SHIFT],
        [[{"A"}], [{"B"}], [{"C"}], [{"A"}], [{"B"}], [{"C"}]],
    )


@pytest.fixture
def abc_teams():
    return [Team("A"), Team("B"), Team("C")]


@pytest.fixture
def db_session():
    """Create in-memory database session, seeded with built-in shift types and teams."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    seed_defaults(session)
    yield session
    session.close()


@pytest.fixture
def db_url(tmp_path):
    """File-backed database URL, for code that opens sessions from worker threads."""
    return f"sqlite:///{tmp_path / 'shiftcycle.db'}"
