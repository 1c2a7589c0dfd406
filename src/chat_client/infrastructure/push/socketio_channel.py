"""python-socketio implementation of the PushChannel port."""
from __future__ import annotations

import logging
from typing import Any

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError
from socketio.exceptions import SocketIOError

from chat_client.application.exceptions import NetworkError, PushDecodeError
from chat_client.application.ports.push import PushListener
from chat_client.domain.entities.message import Message
from chat_client.domain.value_objects.enums import PushEventName
from chat_client.infrastructure.push.protocol import (
    INBOUND_EVENTS,
    decode_push_event,
    encode_message_send,
    encode_typing,
)

logger = logging.getLogger(__name__)


class SocketIOPushChannel:
    """One authenticated connection, owned and torn down by a ChatSession."""

    def __init__(
        self,
        url: str,
        user_id: str,
        *,
        reconnection_attempts: int = 5,
        reconnection_delay: float = 1.0,
        client: socketio.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._user_id = user_id
        # Equal delay bounds and no jitter give a fixed backoff.
        self._sio = client or socketio.AsyncClient(
            reconnection=True,
            reconnection_attempts=reconnection_attempts,
            reconnection_delay=reconnection_delay,
            reconnection_delay_max=reconnection_delay,
            randomization_factor=0,
        )
        self._listener: PushListener | None = None
        for name in INBOUND_EVENTS:
            self._sio.on(name, self._make_handler(name))
        self._sio.on("connect_error", self._on_connect_error)

    @property
    def connected(self) -> bool:
        return bool(self._sio.connected)

    def set_listener(self, listener: PushListener) -> None:
        self._listener = listener

    async def connect(self) -> None:
        try:
            await self._sio.connect(self._url, auth={"userId": self._user_id})
        except SocketConnectionError as exc:
            raise NetworkError(str(exc) or "Push channel unreachable") from exc
        logger.info("Socket connected to %s as %s", self._url, self._user_id)

    async def disconnect(self) -> None:
        await self._sio.disconnect()
        logger.info("Socket disconnected")

    async def send_typing(self, conversation_id: str, is_typing: bool) -> None:
        await self._emit(PushEventName.TYPING, encode_typing(conversation_id, is_typing))

    async def send_message(self, message: Message, receiver_id: str) -> None:
        await self._emit(PushEventName.MESSAGE_SEND, encode_message_send(message, receiver_id))

    async def dispatch(self, name: str, payload: Any = None) -> None:
        """Decode one raw event and hand it to the listener."""
        try:
            event = decode_push_event(name, payload)
        except PushDecodeError as exc:
            logger.warning("Dropping push event: %s", exc.detail)
            return
        if self._listener is None:
            logger.debug("No listener for %s", name)
            return
        try:
            await self._listener(event)
        except Exception:
            logger.exception("Error processing push event %s", name)

    async def _emit(self, name: str, payload: dict[str, Any]) -> None:
        try:
            await self._sio.emit(str(name), payload)
        except SocketIOError as exc:
            raise NetworkError(str(exc) or "Push channel unavailable") from exc

    def _make_handler(self, name: str) -> Any:
        async def _handler(*args: Any) -> None:
            await self.dispatch(name, args[0] if args else None)

        return _handler

    async def _on_connect_error(self, data: Any = None) -> None:
        logger.error("Socket connection error: %s", data)
