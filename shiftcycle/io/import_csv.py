"""CSV import utilities to load custom cycles and exceptions into the database."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, time
from pathlib import Path
from typing import Optional

import pandas as pd
from sqlalchemy.orm import Session

from shiftcycle.domain.models import CycleRow, CycleSlotRow, TurnExceptionRow
from shiftcycle.domain.repositories import CycleRepository, ShiftTypeRepository
from shiftcycle.domain.values import ExceptionStatus, ExceptionType

logger = logging.getLogger(__name__)


def _parse_time(value) -> Optional[time]:
    if value is None or pd.isna(value) or str(value).strip() == "":
        return None
    return datetime.strptime(str(value).strip(), "%H:%M").time()


def _optional_str(row: pd.Series, column: str) -> Optional[str]:
    value = row.get(column)
    if value is None or pd.isna(value) or str(value).strip() == "":
        return None
    return str(value).strip()


def _team_list(value) -> str:
    if value is None or pd.isna(value):
        return ""
    parts = [part.strip() for part in str(value).replace(",", ";").split(";")]
    return ";".join(part for part in parts if part)


def import_cycle_csv(
    session: Session,
    csv_path: str | Path,
    cycle_id: str,
    name: str,
    anchor_date: Optional[date] = None,
    length_days: Optional[int] = None,
) -> int:
    """
    Import a custom cycle from CSV, replacing any cycle with the same id.

    Expected columns: ``day_index`` (0-based), ``shift_type_id`` and
    ``team_ids`` (semicolon-separated). Days with no rows are rest days.

    Args:
        session: Database session
        csv_path: Path to cycle CSV
        cycle_id: Identifier of the cycle
        name: Display name
        anchor_date: Date of cycle day 0 (None: use the configured anchor)
        length_days: Cycle length (default: highest day_index + 1)

    Returns:
        Number of slots imported

    Raises:
        ValueError: If columns are missing, a shift type is unknown or a
            day_index falls outside the cycle
    """
    df = pd.read_csv(csv_path, dtype={"team_ids": str, "shift_type_id": str})

    # Normalize column names
    df.columns = df.columns.str.lower().str.strip()
    missing = {"day_index", "shift_type_id"} - set(df.columns)
    if missing:
        raise ValueError(f"Cycle CSV {csv_path} is missing columns: {', '.join(sorted(missing))}")
    if df.empty and not length_days:
        raise ValueError(f"Cycle CSV {csv_path} has no rows")

    df["day_index"] = df["day_index"].astype(int)
    df["shift_type_id"] = df["shift_type_id"].str.strip()
    length = length_days or int(df["day_index"].max()) + 1

    known = {row.id for row in ShiftTypeRepository.get_all(session)}
    unknown = sorted(set(df["shift_type_id"]) - known)
    if unknown:
        raise ValueError(f"Unknown shift types in {csv_path}: {', '.join(unknown)}")
    out_of_range = df[(df["day_index"] < 0) | (df["day_index"] >= length)]
    if not out_of_range.empty:
        raise ValueError(f"day_index outside 0..{length - 1} in {csv_path}")

    # Deduplicate: last row for a (day, shift) wins
    df = df.drop_duplicates(subset=["day_index", "shift_type_id"], keep="last")

    if CycleRepository.delete(session, cycle_id):
        logger.info("Replacing existing cycle %s", cycle_id)

    cycle = CycleRow(id=cycle_id, name=name, length_days=length, anchor_date=anchor_date)
    for _, row in df.iterrows():
        cycle.slots.append(
            CycleSlotRow(
                day_index=int(row["day_index"]),
                shift_type_id=str(row["shift_type_id"]),
                team_ids=_team_list(row.get("team_ids")),
            )
        )
    CycleRepository.create(session, cycle)

    logger.info("Imported cycle %s (%d days, %d slots) from %s", cycle_id, length, len(df), csv_path)
    return len(df)


def import_exceptions_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import schedule exceptions from CSV into database.

    Required columns: ``user_id``, ``date``, ``exception_type``. Optional:
    ``id``, ``status``, ``shift_type_id``, ``new_start``, ``new_end``
    (HH:MM), ``team_id``, ``from_team_id``, ``notes``, ``created_at``.

    Args:
        session: Database session
        csv_path: Path to exceptions CSV

    Returns:
        Number of exceptions imported

    Raises:
        ValueError: If required columns are missing or a type/status is unknown
    """
    df = pd.read_csv(csv_path, dtype=str)

    # Normalize column names
    df.columns = df.columns.str.lower().str.strip()
    missing = {"user_id", "date", "exception_type"} - set(df.columns)
    if missing:
        raise ValueError(f"Exceptions CSV {csv_path} is missing columns: {', '.join(sorted(missing))}")

    # Normalize enums to uppercase
    df["exception_type"] = df["exception_type"].str.strip().str.upper()
    if "status" not in df.columns:
        df["status"] = ExceptionStatus.ACTIVE.value
    df["status"] = df["status"].fillna(ExceptionStatus.ACTIVE.value).str.strip().str.upper()

    valid_types = {t.value for t in ExceptionType}
    bad_types = sorted(set(df["exception_type"]) - valid_types)
    if bad_types:
        raise ValueError(f"Unknown exception types in {csv_path}: {', '.join(bad_types)}")
    valid_status = {s.value for s in ExceptionStatus}
    bad_status = sorted(set(df["status"]) - valid_status)
    if bad_status:
        raise ValueError(f"Unknown exception status in {csv_path}: {', '.join(bad_status)}")

    # Convert dates
    df["date"] = pd.to_datetime(df["date"]).dt.date
    if "created_at" in df.columns:
        df["created_at"] = pd.to_datetime(df["created_at"])

    # Deduplicate: keep latest row per id
    if "id" in df.columns:
        df = df.drop_duplicates(subset=["id"], keep="last")

    exceptions = []
    for _, row in df.iterrows():
        created_at = row.get("created_at")
        exceptions.append(
            TurnExceptionRow(
                id=_optional_str(row, "id") or uuid.uuid4().hex,
                user_id=int(row["user_id"]),
                date=row["date"],
                exception_type=row["exception_type"],
                status=row["status"],
                shift_type_id=_optional_str(row, "shift_type_id"),
                new_start=_parse_time(row.get("new_start")),
                new_end=_parse_time(row.get("new_end")),
                team_id=_optional_str(row, "team_id"),
                from_team_id=_optional_str(row, "from_team_id"),
                notes=_optional_str(row, "notes"),
                created_at=created_at.to_pydatetime() if created_at is not None and pd.notna(created_at) else datetime.utcnow(),
            )
        )

    # Upsert so re-importing a file updates existing rows
    for exception in exceptions:
        session.merge(exception)
    session.commit()

    logger.info("Imported %d exceptions from %s", len(exceptions), csv_path)
    return len(exceptions)
