"""Built-in fixed rotation: nine teams, three daily shifts, an 18-day cycle.

Each cycle day lists, per shift, the teams on duty, plus the teams resting
that day. Days come in pairs and every team works twelve of the 18 days.
"""

from __future__ import annotations

from datetime import date, time
from typing import List

from .values import CycleDefinition, ShiftType, Team

BUILTIN_CYCLE_ID = "builtin"
DEFAULT_ANCHOR_DATE = date(2018, 11, 7)

MORNING = ShiftType("morning", "Morning", time(6, 0), time(14, 0), description="Morning shift 06:00-14:00")
AFTERNOON = ShiftType("afternoon", "Afternoon", time(14, 0), time(22, 0), description="Afternoon shift 14:00-22:00")
NIGHT = ShiftType("night", "Night", time(22, 0), time(6, 0), description="Night shift 22:00-06:00")
REST = ShiftType("rest", "Rest", time(0, 0), time(0, 0), is_rest_marker=True, description="Teams off duty")

DEFAULT_SHIFT_TYPES = (MORNING, AFTERNOON, NIGHT, REST)

TEAM_IDS = ("A", "B", "C", "D", "E", "F", "G", "H", "I")

# [day][morning, afternoon, night, rest]
BUILTIN_TABLE = (
    ("AB", "CD", "EF", "GHI"),
    ("AB", "CD", "EF", "GHI"),
    ("AH", "DI", "GF", "ECB"),
    ("AH", "DI", "GF", "ECB"),
    ("CH", "EI", "GB", "ADF"),
    ("CH", "EI", "GB", "ADF"),
    ("CD", "EF", "AB", "GHI"),
    ("CD", "EF", "AB", "GHI"),
    ("DI", "GF", "AH", "ECB"),
    ("DI", "GF", "AH", "ECB"),
    ("EI", "GB", "CH", "ADF"),
    ("EI", "GB", "CH", "ADF"),
    ("EF", "AB", "CD", "GHI"),
    ("EF", "AB", "CD", "GHI"),
    ("GF", "AH", "DI", "ECB"),
    ("GF", "AH", "DI", "ECB"),
    ("GB", "CH", "EI", "ADF"),
    ("GB", "CH", "EI", "ADF"),
)


def builtin_cycle() -> CycleDefinition:
    """Return the built-in 18-day cycle."""
    return CycleDefinition.from_table(
        cycle_id=BUILTIN_CYCLE_ID,
        name="Built-in 18-day rotation",
        shift_types=DEFAULT_SHIFT_TYPES,
        # single-letter team ids: each string is split into its letters
        table=[[list(teams) for teams in day] for day in BUILTIN_TABLE],
        builtin=True,
    )


def builtin_teams() -> List[Team]:
    """The nine built-in teams; they share the cycle with no phase offset."""
    return [Team(id=team_id, name=f"Team {team_id}") for team_id in TEAM_IDS]
