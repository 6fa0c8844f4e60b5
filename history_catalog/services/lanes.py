"""Deterministic lane assignment for historical events.

Lanes are computed once at ingest time over the full stored set and written
back to the store. Display code reads ``lane_index`` and never recomputes it.

Lanes ``0 .. MAX_LANES - 2`` take part in collision avoidance: each event
occupies a canonical window of ``CANONICAL_WIDTH_DAYS`` centred on its date.
Events that fit in no collidable lane go to the overflow lane
``MAX_LANES - 1``, accepting visual overlap there.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Iterable, List, Tuple

from ..config import CANONICAL_WIDTH_DAYS, MAX_LANES
from ..models import HistoricalEvent
from ..utils.datetime_utils import date_to_days

logger = logging.getLogger(__name__)

Interval = Tuple[float, float]

OVERFLOW_LANE: int = MAX_LANES - 1


def djb2_hash(text: str) -> int:
    """Return the absolute value of the 32-bit signed djb2 hash of *text*."""
    h = 5381
    for ch in text:
        h = (h * 33 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def intervals_overlap(a: Interval, b: Interval) -> bool:
    """Half-open overlap test for ``[start, end)`` ranges."""
    return a[0] < b[1] and b[0] < a[1]


def assign_lanes(
    events: Iterable[HistoricalEvent],
    *,
    max_lanes: int = MAX_LANES,
    width_days: float = CANONICAL_WIDTH_DAYS,
) -> List[HistoricalEvent]:
    """Return copies of *events* sorted by date with ``lane_index`` set.

    The result depends only on the set of events, not on their input order:
    ties on date are broken by id before placement.
    """
    if max_lanes < 2:
        raise ValueError("max_lanes must leave at least one collidable lane")

    collidable = max_lanes - 1
    overflow = max_lanes - 1
    half_width = width_days / 2
    lane_intervals: List[List[Interval]] = [[] for _ in range(collidable)]

    ordered = sorted(events, key=lambda e: (e.date, e.id))
    placed: List[HistoricalEvent] = []
    overflowed = 0

    for event in ordered:
        day = date_to_days(event.date)
        window: Interval = (day - half_width, day + half_width)
        base = djb2_hash(event.id) % collidable

        free: List[int] = []
        for offset in range(collidable):
            lane = (base + offset) % collidable
            if not any(intervals_overlap(window, other) for other in lane_intervals[lane]):
                free.append(lane)

        if free:
            # least loaded; min() keeps probe order on ties
            lane = min(free, key=lambda candidate: len(lane_intervals[candidate]))
            lane_intervals[lane].append(window)
        else:
            lane = overflow
            overflowed += 1

        placed.append(dataclasses.replace(event, lane_index=lane))

    if overflowed:
        logger.info("%d of %d events placed in overflow lane %d", overflowed, len(placed), overflow)
    return placed

__all__ = ["assign_lanes", "djb2_hash", "intervals_overlap", "OVERFLOW_LANE"]
