"""Debounced user search feeding a results listener."""
from __future__ import annotations

import logging
from typing import Any, Callable

from chat_client.application.exceptions import AppError, ValidationError
from chat_client.application.ports.api import ChatApi
from chat_client.application.ports.timers import TimerScheduler, TimerToken
from chat_client.domain.entities.user import UserRef

logger = logging.getLogger(__name__)

SEARCH_DEBOUNCE_SECONDS = 0.3
SEARCH_MIN_QUERY_LENGTH = 2

ResultsListener = Callable[[list[UserRef], str | None], Any]


class DebouncedUserSearch:
    def __init__(
        self,
        api: ChatApi,
        scheduler: TimerScheduler,
        *,
        delay: float = SEARCH_DEBOUNCE_SECONDS,
        min_length: int = SEARCH_MIN_QUERY_LENGTH,
        on_results: ResultsListener | None = None,
    ) -> None:
        self._api = api
        self._scheduler = scheduler
        self._delay = delay
        self._min_length = min_length
        self._on_results = on_results
        self._timer: TimerToken | None = None
        self._generation = 0
        self.query = ""
        self.results: list[UserRef] = []
        self.error: str | None = None

    def validate(self, query: str) -> str:
        stripped = query.strip()
        if len(stripped) < self._min_length:
            raise ValidationError(f"Search query must be at least {self._min_length} characters")
        return stripped

    def update_query(self, query: str) -> None:
        """Restart the debounce window for a new query."""
        self.query = query
        self._generation += 1
        if self._timer is not None:
            self._scheduler.cancel(self._timer)
            self._timer = None

        if len(query.strip()) < self._min_length:
            self._publish([], None)
            return

        generation = self._generation
        self._timer = self._scheduler.schedule(
            self._delay, lambda: self._run(query, generation),
        )

    def cancel(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._scheduler.cancel(self._timer)
            self._timer = None

    async def search(self, query: str) -> list[UserRef]:
        """Search immediately, bypassing the debounce."""
        return await self._api.search_users(self.validate(query))

    async def _run(self, query: str, generation: int) -> None:
        self._timer = None
        try:
            users = await self.search(query)
        except AppError as exc:
            if generation == self._generation:
                logger.warning("User search failed: %s", exc.detail)
                self._publish([], exc.detail or "Search failed")
            return
        if generation != self._generation:
            logger.debug("Dropping stale search results for %r", query)
            return
        self._publish(users, None)

    def _publish(self, users: list[UserRef], error: str | None) -> None:
        self.results = users
        self.error = error
        if self._on_results is not None:
            self._on_results(users, error)
