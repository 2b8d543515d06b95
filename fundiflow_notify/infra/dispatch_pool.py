# fundiflow_notify/infra/dispatch_pool.py
"""
Bounded pool of detached dispatch tasks.

Request handlers that must not wait for delivery submit the event here and
return immediately.  Each submission becomes an asyncio task tracked by the
pool; a done callback logs the outcome and drops the reference, so abandoned
dispatches never leak.  When ``max_pending`` tasks are already in flight new
submissions are refused (logged and counted), never queued.

Usage:
    pool = DispatchPool(dispatcher, max_pending=settings.dispatch_pool_max_pending)
    pool.submit(ProjectCreated(...))
    ...
    await pool.drain(timeout=10)   # on shutdown
    await pool.shutdown()
"""
from __future__ import annotations

import asyncio
from typing import Optional

from fundiflow_notify.core.notifications.dispatcher import Dispatcher
from fundiflow_notify.core.notifications.domain import TriggerEvent
from fundiflow_notify.infra.logging_config import get_logger
from fundiflow_notify.infra.metrics import inc_counter

logger = get_logger(__name__)


class DispatchPool:
    def __init__(self, dispatcher: Dispatcher, *, max_pending: int = 100):
        self._dispatcher = dispatcher
        self._max_pending = max_pending
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, event: TriggerEvent) -> Optional[asyncio.Task]:
        """
        Schedule ``dispatcher.dispatch(event)`` without awaiting it.

        Must be called from inside a running event loop.  Returns the task,
        or None when the pool is closed or full.
        """
        if self._closed:
            logger.warning(f"Dispatch pool closed, dropping {event.event_type}")
            inc_counter("dispatch_pool_rejected_total", reason="closed")
            return None

        if len(self._tasks) >= self._max_pending:
            logger.warning(
                f"Dispatch pool full ({len(self._tasks)} pending), dropping {event.event_type}",
                extra={"event_type": event.event_type},
            )
            inc_counter("dispatch_pool_rejected_total", reason="full")
            return None

        task = asyncio.create_task(
            self._dispatcher.dispatch(event), name=f"dispatch:{event.event_type}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        inc_counter("dispatch_pool_submitted_total", event_type=event.event_type)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            inc_counter("dispatch_pool_cancelled_total")
            return
        exc = task.exception()
        if exc:
            logger.error(
                f"Detached dispatch failed: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )
            inc_counter("dispatch_pool_errors_total")

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for in-flight dispatches.  False if the timeout expired first."""
        if not self._tasks:
            return True
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        return not pending

    async def shutdown(self, timeout: float | None = 10.0) -> None:
        """Refuse new work, give in-flight dispatches ``timeout`` seconds, cancel the rest."""
        self._closed = True
        finished = await self.drain(timeout)
        if not finished:
            leftovers = list(self._tasks)
            logger.warning(f"Cancelling {len(leftovers)} unfinished dispatches")
            for task in leftovers:
                task.cancel()
            await asyncio.gather(*leftovers, return_exceptions=True)
        logger.info("Dispatch pool stopped")
