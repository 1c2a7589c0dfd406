from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from chat_client.domain.value_objects.ids import ConversationId, MessageId, UserId, is_placeholder


@dataclass(frozen=True, slots=True)
class Receipt:
    user_id: UserId
    at: datetime


@dataclass(frozen=True, slots=True)
class Message:
    id: MessageId
    conversation_id: ConversationId
    sender_id: UserId
    body: str
    created_at: datetime
    type: str = "text"
    delivered_to: tuple[Receipt, ...] = ()
    read_by: tuple[Receipt, ...] = ()
    deleted: bool = False
    edited_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        """True while the id is a locally generated placeholder."""
        return is_placeholder(self.id)

    def is_read_by(self, user_id: str) -> bool:
        return any(r.user_id == user_id for r in self.read_by)

    def is_delivered_to(self, user_id: str) -> bool:
        return any(r.user_id == user_id for r in self.delivered_to)
