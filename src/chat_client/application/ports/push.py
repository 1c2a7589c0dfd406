from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

from chat_client.domain.entities.message import Message
from chat_client.domain.events.push import PushEvent

PushListener = Callable[[PushEvent], Awaitable[Any]]


class PushChannel(Protocol):
    """Persistent bidirectional connection owned by one session."""

    @property
    def connected(self) -> bool: ...

    def set_listener(self, listener: PushListener) -> None: ...

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def send_typing(self, conversation_id: str, is_typing: bool) -> None: ...

    async def send_message(self, message: Message, receiver_id: str) -> None: ...
