"""Asyncio helpers for the host's long-running background tasks."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Awaitable, Iterable, Optional

from .logging_utils import LoggerLike, ensure_structured_logger


def add_task_exception_logger(
    task: asyncio.Task[Any],
    *,
    logger: LoggerLike = None,
    context: Optional[str] = None,
) -> asyncio.Task[Any]:
    """Retrieve and log the exception of a finished task.

    Without this a failing relay or reconciler task only surfaces as
    "Task exception was never retrieved", usually at interpreter exit.
    """
    task_logger = ensure_structured_logger(logger, fallback_name="asyncio")
    label = context or task.get_name()

    def _done(done_task: asyncio.Task[Any]) -> None:
        if done_task.cancelled():
            return
        exc = done_task.exception()
        if exc is not None:
            task_logger.error(
                "Unhandled exception in %s: %s", label, exc, exc_info=exc
            )

    task.add_done_callback(_done)
    return task


def create_logged_task(
    coro: Awaitable[Any],
    *,
    logger: LoggerLike = None,
    context: Optional[str] = None,
    pending: Optional[set[asyncio.Task[Any]]] = None,
) -> asyncio.Task[Any]:
    """Create a task that won't lose exceptions, optionally tracking it."""
    task = asyncio.get_running_loop().create_task(coro)
    if context:
        task.set_name(context)

    add_task_exception_logger(task, logger=logger, context=context)

    if pending is not None:
        pending.add(task)
        task.add_done_callback(pending.discard)

    return task


async def join_tasks(
    tasks: Iterable[asyncio.Task[Any]],
    timeout: float,
    *,
    logger: LoggerLike = None,
) -> None:
    """Wait for ``tasks`` up to ``timeout`` seconds, then cancel stragglers."""
    pending = [task for task in tasks if not task.done()]
    if not pending:
        return

    _, still_running = await asyncio.wait(pending, timeout=timeout)
    if not still_running:
        return

    ensure_structured_logger(logger, fallback_name="asyncio").warning(
        "Cancelling %d background task(s) still running after %.1fs",
        len(still_running),
        timeout,
    )
    for task in still_running:
        task.cancel()
    for task in still_running:
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await task
