from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from chat_client.domain.entities.user import UserRef
from chat_client.domain.value_objects.enums import ConversationKind
from chat_client.domain.value_objects.ids import ConversationId, MessageId, UserId


@dataclass(frozen=True, slots=True)
class MessageSummary:
    """Denormalized last-message fields shown in the conversation list."""

    message_id: MessageId
    text: str
    sender_id: UserId
    created_at: datetime


@dataclass(frozen=True, slots=True)
class Conversation:
    id: ConversationId
    kind: ConversationKind
    participants: tuple[UserRef, ...]
    name: str | None = None
    description: str | None = None
    avatar: str | None = None
    admin_ids: tuple[UserId, ...] = ()
    last_message: MessageSummary | None = None
    last_activity: datetime | None = None
    unread_count: int = 0

    @property
    def participant_ids(self) -> tuple[str, ...]:
        return tuple(p.id for p in self.participants)
