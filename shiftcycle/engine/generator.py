"""Base schedule generation over a date range."""

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional

from shiftcycle.domain.values import ComputedDay, ComputedShift, CycleDefinition, Team
from shiftcycle.errors import ConfigurationError
from shiftcycle.services.calendar import iter_dates, month_bounds

from .resolver import PatternResolver

logger = logging.getLogger(__name__)


class ScheduleGenerator:
    """
    Produces the unmerged, per-day schedule for a date range.

    Stateless: identical inputs always produce equal output.
    """

    def __init__(self, resolver: Optional[PatternResolver] = None):
        self.resolver = resolver or PatternResolver()

    def generate(
        self,
        start_date: date,
        end_date: date,
        cycle: CycleDefinition,
        anchor_date: date,
        team: Optional[Team] = None,
    ) -> List[ComputedDay]:
        """
        Generate one ComputedDay per date from start_date to end_date inclusive.

        Args:
            start_date: First date
            end_date: Last date (inclusive)
            cycle: Cycle definition to read
            anchor_date: Date on which cycle day 0 falls
            team: If given, keep only working shifts where this team is on
                duty, reading the cycle at the team's phase offset. If None,
                return every slot for the whole crew (rest slot included).

        Returns:
            Days in ascending date order, without gaps

        Raises:
            ConfigurationError: If start_date is after end_date
        """
        if start_date > end_date:
            raise ConfigurationError(f"Invalid range: {start_date} is after {end_date}")

        offset = team.phase_offset_days if team is not None else 0
        days = []
        for day in iter_dates(start_date, end_date):
            layout = self.resolver.resolve(day, cycle, anchor_date, offset)
            shifts = []
            for shift_type, teams in zip(cycle.shift_types, layout):
                if team is None:
                    shifts.append(ComputedShift(shift_type, teams))
                elif not shift_type.is_rest_marker and team.id in teams:
                    shifts.append(ComputedShift(shift_type, teams))
            days.append(ComputedDay(date=day, shifts=tuple(shifts)))

        logger.debug(
            "Generated %d days %s..%s for cycle %s (team=%s)",
            len(days), start_date, end_date, cycle.cycle_id, team.id if team else "*",
        )
        return days

    def generate_month(
        self,
        year: int,
        month: int,
        cycle: CycleDefinition,
        anchor_date: date,
        team: Optional[Team] = None,
    ) -> List[ComputedDay]:
        """Generate every day of a calendar month."""
        first, last = month_bounds(year, month)
        return self.generate(first, last, cycle, anchor_date, team)
