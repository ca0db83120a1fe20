"""CSV export of computed schedules."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

import pandas as pd

from shiftcycle.domain.values import ComputedDay

logger = logging.getLogger(__name__)

SCHEDULE_COLUMNS = [
    "date",
    "shift_type_id",
    "shift_name",
    "start_time",
    "end_time",
    "teams",
    "origin",
    "exception_ids",
    "notes",
]


def _hm(value) -> str:
    return value.strftime("%H:%M") if value is not None else ""


def days_to_frame(days: Iterable[ComputedDay]) -> pd.DataFrame:
    """
    Flatten computed days into one row per shift.

    Rest slots are omitted; a day with no working shift still gets a single
    row with an empty ``shift_type_id`` so its notes are not lost.

    Args:
        days: Computed days (any order)

    Returns:
        DataFrame with SCHEDULE_COLUMNS, sorted by date then start time
    """
    rows = []
    for day in days:
        notes = " | ".join(note.text for note in day.notes if note.text)
        working = day.working_shifts()
        if not working:
            rows.append(
                {
                    "date": day.date.isoformat(),
                    "shift_type_id": "",
                    "shift_name": "",
                    "start_time": "",
                    "end_time": "",
                    "teams": "",
                    "origin": "",
                    "exception_ids": "",
                    "notes": notes,
                }
            )
            continue
        for shift in working:
            rows.append(
                {
                    "date": day.date.isoformat(),
                    "shift_type_id": shift.shift_type_id,
                    "shift_name": shift.shift_type.name,
                    "start_time": _hm(shift.start_time),
                    "end_time": _hm(shift.end_time),
                    "teams": ";".join(sorted(shift.teams_on_duty)),
                    "origin": shift.origin.value,
                    "exception_ids": ";".join(shift.exception_ids),
                    "notes": notes,
                }
            )

    df = pd.DataFrame(rows, columns=SCHEDULE_COLUMNS)
    if not df.empty:
        df = df.sort_values(["date", "start_time"], kind="stable").reset_index(drop=True)
    return df


def export_schedule_csv(days: Iterable[ComputedDay], csv_path: str | Path) -> int:
    """
    Export computed days to CSV.

    Args:
        days: Computed days
        csv_path: Output CSV path

    Returns:
        Number of rows written
    """
    df = days_to_frame(days)
    df.to_csv(csv_path, index=False)
    logger.info("Exported %d schedule rows to %s", len(df), csv_path)
    return len(df)
