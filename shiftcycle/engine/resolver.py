"""Cycle position resolution by modular arithmetic."""

from __future__ import annotations

from datetime import date
from typing import FrozenSet, Tuple

from shiftcycle.domain.values import CycleDefinition
from shiftcycle.errors import ConfigurationError
from shiftcycle.services.calendar import days_between


def cycle_position(day: date, cycle_length: int, anchor_date: date, phase_offset_days: int = 0) -> int:
    """
    Index into a cycle of ``cycle_length`` days for a date.

    Dates before the anchor and offsets outside ``[0, cycle_length)`` are
    normalized, so the result is always in ``[0, cycle_length)``.

    Raises:
        ConfigurationError: If cycle_length is not positive
    """
    if cycle_length <= 0:
        raise ConfigurationError(f"Cycle length must be positive, got {cycle_length}")
    # % with a positive modulus is non-negative, even for dates before the anchor
    return (days_between(anchor_date, day) + phase_offset_days) % cycle_length


class PatternResolver:
    """Maps a date onto a cycle day's slot layout."""

    def resolve(
        self,
        day: date,
        cycle: CycleDefinition,
        anchor_date: date,
        phase_offset_days: int = 0,
    ) -> Tuple[FrozenSet[str], ...]:
        """
        Return the per-slot team sets that apply on ``day``.

        Args:
            day: Date to resolve
            cycle: Cycle definition
            anchor_date: Date on which cycle day 0 falls
            phase_offset_days: Team phase offset, any integer

        Returns:
            Tuple aligned with ``cycle.shift_types``
        """
        return cycle.day(self.position(day, cycle, anchor_date, phase_offset_days))

    def position(self, day: date, cycle: CycleDefinition, anchor_date: date, phase_offset_days: int = 0) -> int:
        return cycle_position(day, cycle.length_days, anchor_date, phase_offset_days)
