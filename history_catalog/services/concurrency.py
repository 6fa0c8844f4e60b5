"""Bounded-concurrency execution of independent coroutine tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

TaskFactory = Callable[[], Awaitable[T]]


async def run_with_limit(tasks: Sequence[TaskFactory[T]], limit: int) -> List[Optional[T]]:
    """Run *tasks* with at most *limit* in flight and return index-aligned results.

    A task raising an ``Exception`` contributes ``None`` to its slot; the rest
    of the batch keeps running. Returns once every task has settled.
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    results: List[Optional[T]] = [None] * len(tasks)
    next_index = 0

    async def worker() -> None:
        nonlocal next_index
        while next_index < len(tasks):
            i = next_index
            next_index += 1
            try:
                results[i] = await tasks[i]()
            except Exception as exc:  # noqa: BLE001 - failures map to "no result"
                logger.debug("Task %d failed: %s", i, exc)
                results[i] = None

    await asyncio.gather(*(worker() for _ in range(min(limit, len(tasks)))))
    return results

__all__ = ["run_with_limit", "TaskFactory"]
