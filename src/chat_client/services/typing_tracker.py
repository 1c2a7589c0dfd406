"""Inbound typing state with self-expiring entries."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from chat_client.application.ports.clock import Clock
from chat_client.application.ports.timers import TimerScheduler, TimerToken

logger = logging.getLogger(__name__)

TYPING_EXPIRY_SECONDS = 2.0

_Key = tuple[str, str]


class TypingTracker:
    def __init__(
        self,
        clock: Clock,
        scheduler: TimerScheduler,
        expiry_seconds: float = TYPING_EXPIRY_SECONDS,
    ) -> None:
        self._clock = clock
        self._scheduler = scheduler
        self._expiry = expiry_seconds
        self._deadlines: dict[_Key, datetime] = {}
        self._timers: dict[_Key, TimerToken] = {}

    def set_typing(self, user_id: str, conversation_id: str) -> None:
        """Insert or refresh the entry with a new deadline."""
        key = (user_id, conversation_id)
        self._deadlines[key] = self._clock.now() + timedelta(seconds=self._expiry)
        old = self._timers.pop(key, None)
        if old is not None:
            self._scheduler.cancel(old)
        self._timers[key] = self._scheduler.schedule(
            self._expiry, lambda: self._expire(key),
        )

    def clear_typing(self, user_id: str, conversation_id: str) -> None:
        key = (user_id, conversation_id)
        self._deadlines.pop(key, None)
        token = self._timers.pop(key, None)
        if token is not None:
            self._scheduler.cancel(token)

    def is_typing(self, user_id: str, conversation_id: str) -> bool:
        deadline = self._deadlines.get((user_id, conversation_id))
        return deadline is not None and deadline > self._clock.now()

    def typing_users(self, conversation_id: str) -> tuple[str, ...]:
        now = self._clock.now()
        return tuple(
            user_id
            for (user_id, conv_id), deadline in self._deadlines.items()
            if conv_id == conversation_id and deadline > now
        )

    def snapshot(self) -> dict[str, tuple[str, ...]]:
        now = self._clock.now()
        result: dict[str, list[str]] = {}
        for (user_id, conv_id), deadline in self._deadlines.items():
            if deadline > now:
                result.setdefault(conv_id, []).append(user_id)
        return {conv_id: tuple(users) for conv_id, users in result.items()}

    def clear(self) -> None:
        for token in self._timers.values():
            self._scheduler.cancel(token)
        self._timers.clear()
        self._deadlines.clear()

    def _expire(self, key: _Key) -> None:
        self._timers.pop(key, None)
        deadline = self._deadlines.get(key)
        if deadline is None:
            return
        remaining = (deadline - self._clock.now()).total_seconds()
        if remaining > 0:
            # Timer clock and wall clock drift apart; wait out the rest.
            self._timers[key] = self._scheduler.schedule(remaining, lambda: self._expire(key))
            return
        del self._deadlines[key]
        logger.debug("Typing expired: user=%s conversation=%s", *key)
