"""Configuration-time checks for cycles and teams."""

from __future__ import annotations

from typing import Iterable, List, Optional

from shiftcycle.domain.values import CycleDefinition, ShiftType, Team
from shiftcycle.errors import ConfigurationError


def find_team(teams: Iterable[Team], team_id: Optional[str]) -> Optional[Team]:
    """
    Look up a team by id.

    Args:
        teams: Known teams
        team_id: Requested team, or None for the whole crew

    Returns:
        The matching team, or None if team_id is None

    Raises:
        ConfigurationError: If team_id is not a known team
    """
    if team_id is None:
        return None
    for team in teams:
        if team.id == team_id:
            return team
    raise ConfigurationError(f"Unknown team '{team_id}'")


def validate_teams(teams: Iterable[Team], cycle: CycleDefinition) -> List[Team]:
    """
    Check that team ids are unique and that every team the cycle names exists.

    Phase offsets outside ``[0, cycle_length)`` are accepted; the resolver
    normalizes them.

    Raises:
        ConfigurationError: On duplicate ids or teams referenced by the cycle
            but not configured
    """
    teams = list(teams)
    seen = set()
    for team in teams:
        if team.id in seen:
            raise ConfigurationError(f"Duplicate team id '{team.id}'")
        seen.add(team.id)

    unknown = sorted(cycle.teams() - seen)
    if unknown:
        raise ConfigurationError(
            f"Cycle '{cycle.cycle_id}' references unknown teams: {', '.join(unknown)}"
        )
    return teams


def validate_shift_types(shift_types: Iterable[ShiftType]) -> List[ShiftType]:
    """Check shift type ids are unique and at most one is a rest marker."""
    shift_types = list(shift_types)
    ids = [st.id for st in shift_types]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ConfigurationError(f"Duplicate shift type ids: {', '.join(duplicates)}")
    if sum(1 for st in shift_types if st.is_rest_marker) > 1:
        raise ConfigurationError("At most one shift type may be a rest marker")
    return shift_types
