"""Cancellable one-shot timers on the running asyncio loop."""
from __future__ import annotations

import asyncio
import inspect
import itertools
import logging

from chat_client.application.ports.timers import TimerCallback, TimerToken

logger = logging.getLogger(__name__)


class AsyncioTimerScheduler:
    """Implements application.ports.timers.TimerScheduler."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._counter = itertools.count(1)
        self._handles: dict[TimerToken, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[object]] = set()

    def schedule(self, delay: float, callback: TimerCallback) -> TimerToken:
        loop = self._loop or asyncio.get_running_loop()
        token = TimerToken(next(self._counter))
        self._handles[token] = loop.call_later(delay, self._fire, token, callback)
        return token

    def cancel(self, token: TimerToken) -> bool:
        handle = self._handles.pop(token, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
        for task in self._tasks:
            task.cancel()

    @property
    def pending(self) -> int:
        return len(self._handles)

    def _fire(self, token: TimerToken, callback: TimerCallback) -> None:
        self._handles.pop(token, None)
        try:
            result = callback()
        except Exception:
            logger.exception("Timer callback failed")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[object]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Timer task failed", exc_info=task.exception())
