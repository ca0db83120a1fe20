"""Scroll-aware prefetch planning and the bucket retention window."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List

from shiftcycle.domain.values import BucketKey


class ScrollDirection(Enum):
    FORWARD = "forward"
    BACKWARD = "backward"
    NONE = "none"


@dataclass(frozen=True)
class PrefetchPolicy:
    """
    Velocity thresholds for widening the prefetch set.

    Attributes:
        fast_velocity: Above this, one extra month ahead is loaded
        very_fast_velocity: Above this, two extra months ahead are loaded
    """

    fast_velocity: int = 15
    very_fast_velocity: int = 30


def plan_prefetch(
    center: BucketKey,
    direction: ScrollDirection,
    velocity: int,
    policy: PrefetchPolicy = PrefetchPolicy(),
) -> List[BucketKey]:
    """
    Buckets to load for a viewport centred on ``center``.

    At rest this is the center and its immediate neighbours. While scrolling
    fast, one or two more months are added in the scroll direction.

    Returns:
        Keys in load priority order, center first
    """
    keys = [center, center.shifted(-1), center.shifted(1)]
    if direction is ScrollDirection.NONE or velocity <= policy.fast_velocity:
        return keys

    step = 1 if direction is ScrollDirection.FORWARD else -1
    keys.append(center.shifted(2 * step))
    if velocity > policy.very_fast_velocity:
        keys.append(center.shifted(3 * step))
    return keys


def in_window(key: BucketKey, center: BucketKey, radius: int) -> bool:
    return abs(key.month_index - center.month_index) <= radius


def eviction_candidates(keys: Iterable[BucketKey], center: BucketKey, radius: int) -> List[BucketKey]:
    """Keys outside ``center ± radius`` months, farthest first."""
    outside = [key for key in keys if not in_window(key, center, radius)]
    outside.sort(key=lambda key: abs(key.month_index - center.month_index), reverse=True)
    return outside
