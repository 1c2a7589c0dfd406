"""Outbound typing signal: one start per burst, stop on send or idle."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from chat_client.application.ports.timers import TimerScheduler, TimerToken

logger = logging.getLogger(__name__)

TYPING_IDLE_SECONDS = 2.0

SendTyping = Callable[[str, bool], Awaitable[Any]]


class OutboundTypingSignal:
    def __init__(
        self,
        send: SendTyping,
        scheduler: TimerScheduler,
        idle_seconds: float = TYPING_IDLE_SECONDS,
    ) -> None:
        self._send = send
        self._scheduler = scheduler
        self._idle = idle_seconds
        self._active: set[str] = set()
        self._timers: dict[str, TimerToken] = {}

    def is_active(self, conversation_id: str) -> bool:
        return conversation_id in self._active

    async def keystroke(self, conversation_id: str) -> None:
        token = self._timers.pop(conversation_id, None)
        if token is not None:
            self._scheduler.cancel(token)
        self._timers[conversation_id] = self._scheduler.schedule(
            self._idle, lambda: self._on_idle(conversation_id),
        )
        if conversation_id not in self._active:
            self._active.add(conversation_id)
            await self._send(conversation_id, True)

    async def stop(self, conversation_id: str) -> None:
        token = self._timers.pop(conversation_id, None)
        if token is not None:
            self._scheduler.cancel(token)
        if conversation_id in self._active:
            self._active.discard(conversation_id)
            await self._send(conversation_id, False)

    def reset(self) -> None:
        """Forget every burst without emitting (channel went away)."""
        for token in self._timers.values():
            self._scheduler.cancel(token)
        self._timers.clear()
        self._active.clear()

    async def _on_idle(self, conversation_id: str) -> None:
        self._timers.pop(conversation_id, None)
        if conversation_id in self._active:
            self._active.discard(conversation_id)
            logger.debug("Typing idle in %s, sending stop", conversation_id)
            await self._send(conversation_id, False)
