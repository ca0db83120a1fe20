"""Error taxonomy for schedule computation and loading."""

from __future__ import annotations


class ShiftCycleError(Exception):
    """Base class for all shiftcycle errors."""


class ConfigurationError(ShiftCycleError):
    """Invalid cycle, team or application configuration.

    Raised at configuration time and never silently defaulted.
    """


class ExceptionStoreUnavailable(ShiftCycleError):
    """The exception store could not be queried.

    Recoverable: the cache falls back to the unmerged base schedule and
    flags the result as degraded.
    """


class LoadCancelled(ShiftCycleError):
    """A bucket load was cancelled (eviction or shutdown); no result is published."""


class LoadTimeout(ShiftCycleError):
    """A bucket load exceeded its time budget.

    Args:
        bucket: Human-readable bucket identifier
        timeout: Timeout in seconds that was exceeded
    """

    def __init__(self, bucket: str, timeout: float):
        super().__init__(f"Loading {bucket} timed out after {timeout:.1f}s")
        self.bucket = bucket
        self.timeout = timeout
