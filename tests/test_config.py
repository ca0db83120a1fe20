"""Tests for YAML configuration loading."""

from datetime import date
from pathlib import Path

import pytest

from shiftcycle.config import AppConfig, CacheConfig, load_config
from shiftcycle.domain.builtin import BUILTIN_CYCLE_ID, DEFAULT_ANCHOR_DATE
from shiftcycle.errors import ConfigurationError

EXAMPLE_CONFIG = Path(__file__).resolve().parent.parent / "shiftcycle_config.yaml"


def test_defaults_without_path():
    cfg = load_config(None)
    assert cfg == AppConfig()
    assert cfg.schedule.anchor_date == DEFAULT_ANCHOR_DATE
    assert cfg.schedule.cycle_id == BUILTIN_CYCLE_ID
    assert cfg.cache.max_concurrent_loads == 2
    assert cfg.cache.load_timeout_seconds == 10.0
    assert cfg.database.url == "sqlite:///shiftcycle.db"


def test_partial_file_keeps_other_defaults(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text(
        """
schedule:
  anchor_date: "2024-02-29"
  team_id: C
cache:
  retention_radius: 2
"""
    )
    cfg = load_config(path)
    assert cfg.schedule.anchor_date == date(2024, 2, 29)
    assert cfg.schedule.team_id == "C"
    assert cfg.cache.retention_radius == 2
    assert cfg.cache.max_cached_buckets == 12
    assert cfg.database == AppConfig().database


def test_example_config_loads():
    cfg = load_config(EXAMPLE_CONFIG)
    assert cfg.schedule.anchor_date == date(2018, 11, 7)
    assert cfg.schedule.user_id == 1
    assert cfg.cache.max_age_seconds == 3600


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(path) == AppConfig()


@pytest.mark.parametrize(
    "content",
    [
        "schedule:\n  colour: blue\n",
        "cache: [1, 2]\n",
        "- just\n- a list\n",
        "schedule:\n  anchor_date: yesterday\n",
        "cache:\n  max_concurrent_loads: 0\n",
        "cache:\n  retention_radius: 5\n  max_cached_buckets: 4\n",
        "schedule: {anchor_date: 2020-01-01\n",
    ],
)
def test_invalid_config_raises(tmp_path, content):
    path = tmp_path / "bad.yaml"
    path.write_text(content)
    with pytest.raises(ConfigurationError):
        load_config(path)


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "missing.yaml")


def test_scroll_thresholds_must_be_ordered():
    with pytest.raises(ConfigurationError):
        CacheConfig(fast_scroll_velocity=40, very_fast_scroll_velocity=30)
