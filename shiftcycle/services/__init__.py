"""Services shared by the schedule engine."""

from .calendar import add_months, days_between, iter_dates, month_bounds, months_covering, parse_month
from .prefetch import PrefetchPolicy, ScrollDirection, eviction_candidates, plan_prefetch
from .validation import find_team, validate_shift_types, validate_teams

__all__ = [
    "add_months",
    "days_between",
    "iter_dates",
    "month_bounds",
    "months_covering",
    "parse_month",
    "PrefetchPolicy",
    "ScrollDirection",
    "eviction_candidates",
    "plan_prefetch",
    "find_team",
    "validate_shift_types",
    "validate_teams",
]
