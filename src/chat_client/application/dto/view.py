from __future__ import annotations

from dataclasses import dataclass, field

from chat_client.domain.entities.conversation import Conversation
from chat_client.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class ChatViewState:
    """Immutable snapshot handed to the presentation layer."""

    conversations: tuple[Conversation, ...] = ()
    selected_conversation_id: str | None = None
    messages: tuple[Message, ...] = ()
    online_user_ids: frozenset[str] = frozenset()
    typing: dict[str, tuple[str, ...]] = field(default_factory=dict)
    connected: bool = False
    has_older_messages: bool = False
