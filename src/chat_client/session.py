"""Session-scoped wiring of transport, timers and the reconciliation core."""
from __future__ import annotations

import logging
from types import TracebackType
from typing import Any, Callable

import httpx

from chat_client.application.dto.outcomes import Outcome
from chat_client.application.exceptions import NetworkError
from chat_client.application.ports.push import PushChannel
from chat_client.config import Settings, settings as default_settings
from chat_client.infrastructure.http.client import HttpChatApi, build_http_client
from chat_client.infrastructure.push.socketio_channel import SocketIOPushChannel
from chat_client.infrastructure.timers import AsyncioTimerScheduler
from chat_client.services.reconciliation import ChangeListener, ReconciliationController
from chat_client.services.user_search import DebouncedUserSearch, ResultsListener

logger = logging.getLogger(__name__)


class ChatSession:
    """Owns one user's connections for as long as they are logged in.

    Entering connects the push channel and loads the conversation list;
    exiting disconnects, cancels timers and closes the HTTP client.
    """

    def __init__(
        self,
        user_id: str,
        token: str,
        *,
        config: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        channel: PushChannel | None = None,
        on_change: ChangeListener | None = None,
        on_auth_expired: Callable[[], Any] | None = None,
        on_search_results: ResultsListener | None = None,
    ) -> None:
        cfg = config or default_settings
        self.user_id = user_id
        self._http = http_client or build_http_client(
            cfg.API_BASE_URL, token, timeout=cfg.HTTP_TIMEOUT_SECONDS,
        )
        self.channel: PushChannel = channel or SocketIOPushChannel(
            cfg.SOCKET_URL,
            user_id,
            reconnection_attempts=cfg.SOCKET_RECONNECTION_ATTEMPTS,
            reconnection_delay=cfg.SOCKET_RECONNECTION_DELAY_SECONDS,
        )
        self.scheduler = AsyncioTimerScheduler()
        self.api = HttpChatApi(self._http)
        self.controller = ReconciliationController(
            self.api,
            self.channel,
            user_id,
            self.scheduler,
            recent_ids_capacity=cfg.RECENT_IDS_CAPACITY,
            typing_expiry_seconds=cfg.TYPING_EXPIRY_SECONDS,
            typing_idle_seconds=cfg.TYPING_IDLE_SECONDS,
            conversations_page_size=cfg.CONVERSATIONS_PAGE_SIZE,
            messages_page_size=cfg.MESSAGES_PAGE_SIZE,
            relay_sent_messages=cfg.RELAY_SENT_MESSAGES,
            on_change=on_change,
            on_auth_expired=on_auth_expired,
        )
        self.search = DebouncedUserSearch(
            self.api,
            self.scheduler,
            delay=cfg.SEARCH_DEBOUNCE_SECONDS,
            min_length=cfg.SEARCH_MIN_QUERY_LENGTH,
            on_results=on_search_results,
        )

    async def open(self) -> Outcome:
        try:
            await self.channel.connect()
        except NetworkError as exc:
            # Socket.IO keeps retrying on its own; REST still works.
            logger.warning("Push channel not connected: %s", exc.detail)
        return await self.controller.load_conversations()

    async def close(self) -> None:
        self.search.cancel()
        self.controller.close()
        self.scheduler.cancel_all()
        try:
            await self.channel.disconnect()
        finally:
            await self._http.aclose()
        logger.info("Chat session for %s closed", self.user_id)

    async def __aenter__(self) -> ChatSession:
        outcome = await self.open()
        if not outcome.ok:
            logger.warning("Initial load failed: %s", outcome.error)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
