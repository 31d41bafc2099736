"""Async helpers for running blocking planning inputs concurrently."""

from __future__ import annotations

import asyncio
import inspect
from contextlib import suppress
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


async def run_with_timeout(awaitable: Awaitable[T], timeout_seconds: float) -> T:
    """Await ``awaitable`` or raise ``TimeoutError`` after ``timeout_seconds``.

    On timeout the pending task is cancelled and awaited before raising, so no
    task outlives the call.
    """
    if timeout_seconds <= 0:
        _close_unscheduled_coroutine(awaitable)
        raise ValueError("timeout_seconds must be > 0")

    task: asyncio.Task[T] = asyncio.create_task(_await_value(awaitable))
    done, _ = await asyncio.wait({task}, timeout=timeout_seconds)
    if task in done:
        return await task

    task.cancel()
    with suppress(asyncio.CancelledError):
        await task
    raise TimeoutError(f"operation timed out after {timeout_seconds:g} seconds")


async def gather_in_threads(
    *calls: Callable[[], Any],
    timeout_seconds: float,
) -> tuple[Any, ...]:
    """Run blocking ``calls`` in worker threads and join them under one timeout.

    The first exception raised by any call propagates unchanged.
    """

    async def _joined() -> list[Any]:
        return await asyncio.gather(*(asyncio.to_thread(call) for call in calls))

    results = await run_with_timeout(_joined(), timeout_seconds)
    return tuple(results)


async def _await_value(awaitable: Awaitable[T]) -> T:
    return await awaitable


def _close_unscheduled_coroutine(awaitable: Awaitable[object]) -> None:
    # Raw coroutines that were never scheduled warn at GC time unless closed.
    if inspect.iscoroutine(awaitable):
        awaitable.close()


__all__ = ["gather_in_threads", "run_with_timeout"]
