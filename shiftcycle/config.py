"""Configuration loading (YAML) for schedule computation and caching."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from shiftcycle.domain.builtin import BUILTIN_CYCLE_ID, DEFAULT_ANCHOR_DATE
from shiftcycle.errors import ConfigurationError


@dataclass(frozen=True)
class ScheduleConfig:
    anchor_date: date = DEFAULT_ANCHOR_DATE
    cycle_id: str = BUILTIN_CYCLE_ID
    team_id: Optional[str] = None
    user_id: Optional[int] = None


@dataclass(frozen=True)
class CacheConfig:
    """
    Tuning for ScheduleCache.

    Attributes:
        max_concurrent_loads: Size of the shared worker pool
        retention_radius: Months kept on each side of the current month
        max_cached_buckets: Bucket count above which retention eviction runs
        load_timeout_seconds: Per-bucket load budget (None disables)
        max_age_seconds: Age after which an AVAILABLE bucket expires (None: never)
        fast_scroll_velocity: Velocity that widens prefetch by one month
        very_fast_scroll_velocity: Velocity that widens prefetch by two months
    """

    max_concurrent_loads: int = 2
    retention_radius: int = 3
    max_cached_buckets: int = 12
    load_timeout_seconds: Optional[float] = 10.0
    max_age_seconds: Optional[float] = None
    fast_scroll_velocity: int = 15
    very_fast_scroll_velocity: int = 30

    def __post_init__(self):
        if self.max_concurrent_loads < 1:
            raise ConfigurationError("cache.max_concurrent_loads must be at least 1")
        if self.retention_radius < 1:
            raise ConfigurationError("cache.retention_radius must be at least 1")
        if self.max_cached_buckets < 2 * self.retention_radius + 1:
            raise ConfigurationError("cache.max_cached_buckets must cover the retention window")
        if self.load_timeout_seconds is not None and self.load_timeout_seconds <= 0:
            raise ConfigurationError("cache.load_timeout_seconds must be positive")
        if self.very_fast_scroll_velocity < self.fast_scroll_velocity:
            raise ConfigurationError("cache.very_fast_scroll_velocity must be >= fast_scroll_velocity")


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///shiftcycle.db"


@dataclass(frozen=True)
class AppConfig:
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def _parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ConfigurationError(f"Invalid date '{value}', expected YYYY-MM-DD")


def _section(raw: Dict[str, Any], name: str, cls):
    data = raw.get(name) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config section '{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown keys in '{name}': {', '.join(unknown)}")
    if cls is ScheduleConfig and "anchor_date" in data:
        data = dict(data, anchor_date=_parse_date(data["anchor_date"]))
    try:
        return cls(**data)
    except TypeError as e:
        raise ConfigurationError(f"Invalid '{name}' section: {e}")


def load_config(path: str | Path | None = None) -> AppConfig:
    """
    Load configuration from a YAML file.

    Args:
        path: YAML file with optional ``schedule``, ``cache`` and ``database``
            sections. If None, defaults are returned.

    Returns:
        AppConfig

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    if path is None:
        return AppConfig()

    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        raw = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse {path}: {e}")
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config root in {path} must be a mapping")

    return AppConfig(
        schedule=_section(raw, "schedule", ScheduleConfig),
        cache=_section(raw, "cache", CacheConfig),
        database=_section(raw, "database", DatabaseConfig),
    )
