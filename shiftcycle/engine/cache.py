"""Asynchronous month-bucket cache with coalescing, prefetch and retention."""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import date
from typing import Callable, Dict, List, Optional, Tuple

from shiftcycle.config import CacheConfig
from shiftcycle.domain.values import (
    BucketKey,
    CacheState,
    ComputedDay,
    MonthCacheEntry,
    ScheduleContext,
)
from shiftcycle.errors import ExceptionStoreUnavailable, LoadCancelled, LoadTimeout
from shiftcycle.services.calendar import months_covering
from shiftcycle.services.prefetch import PrefetchPolicy, ScrollDirection, eviction_candidates, plan_prefetch
from shiftcycle.services.validation import find_team, validate_teams

from .base import CycleProvider, DataAvailabilityCallback, ExceptionStore
from .generator import ScheduleGenerator
from .merge import ExceptionMergeEngine

logger = logging.getLogger(__name__)


@dataclass
class _Bucket:
    """Mutable per-key bookkeeping; only touched under ScheduleCache._lock."""

    key: BucketKey
    state: CacheState = CacheState.NOT_REQUESTED
    days: Optional[Tuple[ComputedDay, ...]] = None
    loaded_at: Optional[float] = None
    epoch: int = 0
    degraded: bool = False
    error: Optional[str] = None
    task: Optional[asyncio.Task] = None
    future: Optional[asyncio.Future] = None

    def snapshot(self) -> MonthCacheEntry:
        return MonthCacheEntry(
            key=self.key,
            state=self.state,
            days=self.days,
            loaded_at=self.loaded_at,
            epoch=self.epoch,
            degraded=self.degraded,
            error=self.error,
        )


@dataclass(frozen=True)
class _LoadResult:
    days: Tuple[ComputedDay, ...]
    degraded: bool
    warnings: Tuple[str, ...]


@dataclass(frozen=True)
class RangeView:
    """Days of an arbitrary date range assembled from month buckets."""

    start: date
    end: date
    days: Tuple[ComputedDay, ...] = ()
    failed_keys: Tuple[BucketKey, ...] = ()
    degraded: bool = False

    @property
    def complete(self) -> bool:
        return not self.failed_keys


@dataclass(frozen=True)
class CacheStatistics:
    total_buckets: int = 0
    available: int = 0
    loading: int = 0
    error: int = 0
    expired: int = 0
    loads_started: int = 0

    def __str__(self) -> str:
        return (
            f"Cache Stats - Total: {self.total_buckets}, Available: {self.available}, "
            f"Loading: {self.loading}, Error: {self.error}, Expired: {self.expired}, "
            f"Loads: {self.loads_started}"
        )


class ScheduleCache:
    """
    Caches merged month schedules and loads them asynchronously.

    Every public method must be called from the event loop thread.
    ``request`` and ``evict`` never raise because of a load: failures become
    ERROR entries and are reported to subscribers.

    Per bucket the state moves NOT_REQUESTED -> LOADING -> AVAILABLE | ERROR.
    Eviction moves any state to EXPIRED, and the next request starts a new
    epoch at LOADING. A load publishes only if its epoch is still current,
    so a cancelled or superseded load can never overwrite newer state.

    Args:
        cycle_provider: Source of cycle, teams, shift types and anchor date
        exception_store: Source of per-user exceptions; None for base-only
        config: Cache tuning
        generator: Schedule generator (default: a new ScheduleGenerator)
        merge_engine: Merge engine (default: built per load from the
            provider's shift types)
        clock: Monotonic clock used for entry age
        executor: Pool for blocking collaborator calls (default: a private
            pool of ``config.max_concurrent_loads`` threads)
    """

    def __init__(
        self,
        cycle_provider: CycleProvider,
        exception_store: Optional[ExceptionStore] = None,
        config: Optional[CacheConfig] = None,
        *,
        generator: Optional[ScheduleGenerator] = None,
        merge_engine: Optional[ExceptionMergeEngine] = None,
        clock: Callable[[], float] = time.monotonic,
        executor: Optional[Executor] = None,
    ):
        self.config = config or CacheConfig()
        self.cycle_provider = cycle_provider
        self.exception_store = exception_store
        self.generator = generator or ScheduleGenerator()
        self.merge_engine = merge_engine
        self.clock = clock
        self.policy = PrefetchPolicy(
            fast_velocity=self.config.fast_scroll_velocity,
            very_fast_velocity=self.config.very_fast_scroll_velocity,
        )

        self._lock = threading.RLock()
        self._buckets: Dict[BucketKey, _Bucket] = {}
        self._subscribers: List[DataAvailabilityCallback] = []
        self._semaphore = asyncio.Semaphore(self.config.max_concurrent_loads)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.max_concurrent_loads,
            thread_name_prefix="shiftcycle-load",
        )
        self._loads_started = 0
        # epochs are cache-wide so a key dropped by retain() never reuses one
        self._epoch = 0
        self._closed = False

    async def __aenter__(self) -> "ScheduleCache":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # -- subscribers -----------------------------------------------------

    def subscribe(self, callback: DataAvailabilityCallback) -> None:
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: DataAvailabilityCallback) -> bool:
        """Remove a subscriber. Returns False if it was not subscribed."""
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)
                return True
            return False

    def notify_state_changed(self, key: BucketKey, state: CacheState, entry: MonthCacheEntry) -> None:
        """Deliver one state transition to every subscriber."""
        logger.debug("%s -> %s (epoch %d)", key, state.value, entry.epoch)
        for callback in self._snapshot_subscribers():
            try:
                callback.on_state_changed(key, state, entry)
            except Exception:
                logger.exception("State callback failed for %s", key)

    def _notify_progress(self, key: BucketKey, epoch: int, percent: int) -> None:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket.epoch != epoch or bucket.state is not CacheState.LOADING:
                return
        for callback in self._snapshot_subscribers():
            try:
                callback.on_loading_progress(key, percent)
            except Exception:
                logger.exception("Progress callback failed for %s", key)

    def _notify_warning(self, key: BucketKey, message: str) -> None:
        logger.warning("%s: %s", key, message)
        for callback in self._snapshot_subscribers():
            try:
                callback.on_warning(key, message)
            except Exception:
                logger.exception("Warning callback failed for %s", key)

    def _snapshot_subscribers(self) -> List[DataAvailabilityCallback]:
        with self._lock:
            return list(self._subscribers)

    # -- inspection ------------------------------------------------------

    def state(self, key: BucketKey) -> CacheState:
        return self.entry(key).state

    def entry(self, key: BucketKey) -> MonthCacheEntry:
        with self._lock:
            bucket = self._buckets.get(key)
            return bucket.snapshot() if bucket else MonthCacheEntry(key)

    def statistics(self) -> CacheStatistics:
        with self._lock:
            states = [bucket.state for bucket in self._buckets.values()]
            return CacheStatistics(
                total_buckets=len(states),
                available=states.count(CacheState.AVAILABLE),
                loading=states.count(CacheState.LOADING),
                error=states.count(CacheState.ERROR),
                expired=states.count(CacheState.EXPIRED),
                loads_started=self._loads_started,
            )

    # -- requests --------------------------------------------------------

    def request(self, key: BucketKey) -> "asyncio.Future[MonthCacheEntry]":
        """
        Get a handle on a bucket's data, starting a load if needed.

        A bucket already LOADING returns its in-flight handle; an AVAILABLE
        bucket that has not aged out returns an already-resolved handle; an
        ERROR bucket returns its error until it is evicted or refreshed.

        Returns:
            Future resolving to a MonthCacheEntry (AVAILABLE, ERROR, or
            EXPIRED if the bucket is evicted before its load finishes)
        """
        loop = asyncio.get_running_loop()
        transitions: List[Tuple[CacheState, MonthCacheEntry]] = []

        with self._lock:
            if self._closed:
                bucket = self._buckets.get(key)
                entry = bucket.snapshot() if bucket else MonthCacheEntry(key)
                return self._resolved(loop, replace(entry, error="cache is closed"))

            bucket = self._buckets.setdefault(key, _Bucket(key))

            if bucket.state is CacheState.LOADING and bucket.future is not None:
                return bucket.future

            if bucket.state is CacheState.AVAILABLE and not self._is_stale(bucket):
                return self._resolved(loop, bucket.snapshot())

            if bucket.state is CacheState.ERROR:
                return self._resolved(loop, bucket.snapshot())

            if bucket.state is CacheState.AVAILABLE:
                self._reset(bucket, CacheState.EXPIRED)
                transitions.append((CacheState.EXPIRED, bucket.snapshot()))

            self._epoch += 1
            bucket.epoch = self._epoch
            bucket.state = CacheState.LOADING
            bucket.error = None
            bucket.future = loop.create_future()
            bucket.task = loop.create_task(self._run_load(key, bucket.epoch))
            self._loads_started += 1
            future = bucket.future
            transitions.append((CacheState.LOADING, bucket.snapshot()))

        for state, snapshot in transitions:
            self.notify_state_changed(key, state, snapshot)
        return future

    def refresh(self, key: BucketKey) -> "asyncio.Future[MonthCacheEntry]":
        """Evict a bucket and load it again (the way to retry an ERROR)."""
        self.evict(key)
        return self.request(key)

    def evict(self, key: BucketKey) -> None:
        """
        Drop a bucket's data and cancel its in-flight load, if any.

        Safe for keys that were never requested or are already EXPIRED.
        """
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or bucket.state in (CacheState.NOT_REQUESTED, CacheState.EXPIRED):
                return
            task, future = bucket.task, bucket.future
            was_loading = bucket.state is CacheState.LOADING
            self._reset(bucket, CacheState.EXPIRED)
            if was_loading:
                bucket.error = str(LoadCancelled(f"{key} evicted before its load finished"))
            snapshot = bucket.snapshot()

        if task is not None and not task.done():
            task.cancel()
        if future is not None and not future.done():
            future.set_result(snapshot)
        self.notify_state_changed(key, CacheState.EXPIRED, snapshot)

    def prefetch(self, center: BucketKey, direction: ScrollDirection, velocity: int) -> List[BucketKey]:
        """
        Request the buckets around a viewport, then trim the retention window.

        Returns:
            Keys that were requested, center first
        """
        keys = plan_prefetch(center, direction, velocity, self.policy)
        for key in keys:
            self.request(key)
        self.retain(center)
        return keys

    def retain(self, center: BucketKey) -> List[BucketKey]:
        """
        Evict buckets outside ``center ± retention_radius``.

        Runs only once more than ``max_cached_buckets`` are tracked, so quick
        back-and-forth scrolling does not cancel loads it will need again.

        Returns:
            Evicted keys
        """
        with self._lock:
            if len(self._buckets) <= self.config.max_cached_buckets:
                return []
            candidates = eviction_candidates(list(self._buckets), center, self.config.retention_radius)

        for key in candidates:
            self.evict(key)
            with self._lock:
                self._buckets.pop(key, None)
        if candidates:
            logger.debug("Retention around %s evicted %d buckets", center, len(candidates))
        return candidates

    async def get_range(self, start: date, end: date, context: Optional[ScheduleContext] = None) -> RangeView:
        """
        Load every month touching ``start..end`` and return the days in range.

        Buckets that end in ERROR or are evicted are listed in
        ``failed_keys`` instead of raising.
        """
        context = context or ScheduleContext()
        keys = [BucketKey(year, month, context) for year, month in months_covering(start, end)]
        # shield: cancelling this call must not cancel handles shared with other callers
        entries = await asyncio.gather(*(asyncio.shield(self.request(key)) for key in keys))

        days: List[ComputedDay] = []
        failed: List[BucketKey] = []
        degraded = False
        for entry in entries:
            if not entry.is_available:
                failed.append(entry.key)
                continue
            degraded = degraded or entry.degraded
            days.extend(day for day in entry.days if start <= day.date <= end)
        return RangeView(start, end, tuple(days), tuple(failed), degraded)

    async def close(self) -> None:
        """Cancel all loads, drop all data and shut the worker pool down."""
        with self._lock:
            self._closed = True
            keys = list(self._buckets)
            tasks = [b.task for b in self._buckets.values() if b.task is not None and not b.task.done()]
        for key in keys:
            self.evict(key)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        with self._lock:
            self._buckets.clear()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
        logger.debug("Schedule cache closed")

    # -- loading ---------------------------------------------------------

    async def _run_load(self, key: BucketKey, epoch: int) -> None:
        timeout = self.config.load_timeout_seconds
        try:
            # the timeout covers the load only, not the wait for a free slot
            async with self._semaphore:
                if timeout is None:
                    result = await self._load(key, epoch)
                else:
                    result = await asyncio.wait_for(self._load(key, epoch), timeout)
        except asyncio.CancelledError:
            logger.debug("Load of %s (epoch %d) cancelled", key, epoch)
            raise
        except asyncio.TimeoutError:
            error = LoadTimeout(str(key), timeout)
            logger.error("%s", error)
            self._publish_error(key, epoch, error)
        except Exception as e:
            logger.error("Loading %s failed: %s", key, e)
            self._publish_error(key, epoch, e)
        else:
            self._publish(key, epoch, result)

    async def _load(self, key: BucketKey, epoch: int) -> _LoadResult:
        context = key.context
        self._notify_progress(key, epoch, 10)

        cycle = await self._call(self.cycle_provider.get_cycle_definition, context)
        teams = await self._call(self.cycle_provider.get_teams)
        anchor = await self._call(self.cycle_provider.get_anchor_date, context)
        self._notify_progress(key, epoch, 30)

        team = find_team(validate_teams(teams, cycle), context.team_id)
        base = self.generator.generate(key.first_day, key.last_day, cycle, anchor, team)
        self._notify_progress(key, epoch, 50)

        if self.exception_store is None or context.user_id is None:
            self._notify_progress(key, epoch, 100)
            return _LoadResult(tuple(base), False, ())

        try:
            records = await self._call(
                self.exception_store.get_active_exceptions, context.user_id, key.first_day, key.last_day
            )
        except ExceptionStoreUnavailable as e:
            self._notify_progress(key, epoch, 100)
            message = f"exceptions unavailable, showing base schedule only ({e})"
            return _LoadResult(tuple(base), True, (message,))
        self._notify_progress(key, epoch, 70)

        engine = self.merge_engine
        if engine is None:
            engine = ExceptionMergeEngine(await self._call(self.cycle_provider.get_shift_types))
        report = engine.merge_with_report(base, records, team_id=context.team_id)
        self._notify_progress(key, epoch, 100)
        return _LoadResult(
            report.days,
            False,
            tuple(f"exception {w.exception_id} on {w.date}: {w.message}" for w in report.warnings),
        )

    async def _call(self, fn, *args):
        """Await a collaborator call; blocking callables run on the worker pool."""
        if inspect.iscoroutinefunction(fn):
            return await fn(*args)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(fn, *args))

    def _publish(self, key: BucketKey, epoch: int, result: _LoadResult) -> None:
        with self._lock:
            bucket = self._current(key, epoch)
            if bucket is None:
                return
            bucket.state = CacheState.AVAILABLE
            bucket.days = result.days
            bucket.loaded_at = self.clock()
            bucket.degraded = result.degraded
            future = bucket.future
            bucket.task = bucket.future = None
            snapshot = bucket.snapshot()

        for message in result.warnings:
            self._notify_warning(key, message)
        logger.info("Loaded %s: %d days%s", key, len(result.days), " (degraded)" if result.degraded else "")
        if future is not None and not future.done():
            future.set_result(snapshot)
        self.notify_state_changed(key, CacheState.AVAILABLE, snapshot)

    def _publish_error(self, key: BucketKey, epoch: int, error: Exception) -> None:
        with self._lock:
            bucket = self._current(key, epoch)
            if bucket is None:
                return
            bucket.state = CacheState.ERROR
            bucket.error = f"{type(error).__name__}: {error}"
            future = bucket.future
            bucket.task = bucket.future = None
            snapshot = bucket.snapshot()

        if future is not None and not future.done():
            future.set_result(snapshot)
        self.notify_state_changed(key, CacheState.ERROR, snapshot)

    def _current(self, key: BucketKey, epoch: int) -> Optional[_Bucket]:
        """The bucket if ``epoch`` is still its live LOADING epoch, else None."""
        bucket = self._buckets.get(key)
        if bucket is None or bucket.epoch != epoch or bucket.state is not CacheState.LOADING:
            logger.debug("Discarding stale result for %s (epoch %d)", key, epoch)
            return None
        return bucket

    def _is_stale(self, bucket: _Bucket) -> bool:
        max_age = self.config.max_age_seconds
        if max_age is None or bucket.loaded_at is None:
            return False
        return self.clock() - bucket.loaded_at > max_age

    @staticmethod
    def _reset(bucket: _Bucket, state: CacheState) -> None:
        bucket.state = state
        bucket.days = None
        bucket.loaded_at = None
        bucket.degraded = False
        bucket.error = None
        bucket.task = None
        bucket.future = None

    @staticmethod
    def _resolved(loop: asyncio.AbstractEventLoop, entry: MonthCacheEntry) -> "asyncio.Future[MonthCacheEntry]":
        future = loop.create_future()
        future.set_result(entry)
        return future
