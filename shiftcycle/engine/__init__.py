"""Schedule engine: resolution, generation, exception merge and caching."""

from .base import CycleProvider, DataAvailabilityCallback, ExceptionStore
from .cache import CacheStatistics, RangeView, ScheduleCache
from .generator import ScheduleGenerator
from .merge import ExceptionMergeEngine, MergeReport, MergeWarning
from .resolver import PatternResolver, cycle_position

__all__ = [
    "CycleProvider",
    "DataAvailabilityCallback",
    "ExceptionStore",
    "CacheStatistics",
    "RangeView",
    "ScheduleCache",
    "ScheduleGenerator",
    "ExceptionMergeEngine",
    "MergeReport",
    "MergeWarning",
    "PatternResolver",
    "cycle_position",
]
