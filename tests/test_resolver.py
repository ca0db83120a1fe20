"""Tests for cycle position resolution."""

from datetime import date, timedelta

import pytest

from shiftcycle.domain.builtin import DEFAULT_ANCHOR_DATE, builtin_cycle
from shiftcycle.engine.resolver import PatternResolver, cycle_position
from shiftcycle.errors import ConfigurationError
from shiftcycle.services.calendar import days_between


def test_anchor_is_day_zero(anchor):
    assert cycle_position(anchor, 6, anchor) == 0
    assert cycle_position(anchor + timedelta(days=5), 6, anchor) == 5
    assert cycle_position(anchor + timedelta(days=6), 6, anchor) == 0


def test_dates_before_anchor_normalize(anchor):
    assert cycle_position(anchor - timedelta(days=1), 6, anchor) == 5
    assert cycle_position(anchor - timedelta(days=6), 6, anchor) == 0
    assert cycle_position(anchor - timedelta(days=700), 18, anchor) == (-700) % 18


def test_resolve_matches_slot_table_for_every_date(anchor, abc_cycle):
    """resolve(d) is slots[daysBetween(anchor, d) mod L], before and after the anchor."""
    resolver = PatternResolver()
    for n in range(-40, 40):
        day = anchor + timedelta(days=n)
        expected = abc_cycle.slots[days_between(anchor, day) % abc_cycle.length_days]
        assert resolver.resolve(day, abc_cycle, anchor) == expected


def test_offset_is_equivalent_to_date_shift(anchor):
    """Reading at offset o1 on d equals reading at offset o2 on d + (o1 - o2) days."""
    cycle = builtin_cycle()
    resolver = PatternResolver()
    for o1, o2 in [(0, 3), (5, 1), (2, 17), (-4, 9)]:
        for n in range(-20, 20):
            day = anchor + timedelta(days=n)
            shifted = day + timedelta(days=o1 - o2)
            assert resolver.resolve(day, cycle, anchor, o1) == resolver.resolve(shifted, cycle, anchor, o2)


def test_offsets_outside_cycle_are_normalized(anchor):
    assert cycle_position(anchor, 6, anchor, phase_offset_days=7) == 1
    assert cycle_position(anchor, 6, anchor, phase_offset_days=-1) == 5
    assert cycle_position(anchor, 6, anchor, phase_offset_days=-13) == 5


@pytest.mark.parametrize("length", [0, -3])
def test_non_positive_length_fails_fast(anchor, length):
    with pytest.raises(ConfigurationError):
        cycle_position(anchor, length, anchor)


def test_builtin_cycle_at_default_anchor():
    resolver = PatternResolver()
    cycle = builtin_cycle()
    morning, afternoon, night, rest = resolver.resolve(DEFAULT_ANCHOR_DATE, cycle, DEFAULT_ANCHOR_DATE)
    assert morning == {"A", "B"}
    assert afternoon == {"C", "D"}
    assert night == {"E", "F"}
    assert rest == {"G", "H", "I"}
    assert resolver.position(date(2018, 11, 25), cycle, DEFAULT_ANCHOR_DATE) == 0
