"""Wire models for the REST API and their mapping to domain entities."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from chat_client.domain.entities.conversation import Conversation, MessageSummary
from chat_client.domain.entities.message import Message, Receipt
from chat_client.domain.entities.user import UserRef
from chat_client.domain.value_objects.enums import ConversationKind


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _ref_id(value: Any) -> Any:
    """Populated references arrive as objects, bare ones as id strings."""
    if isinstance(value, dict):
        return value.get("_id", value.get("id"))
    return value


class _Wire(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Envelope(_Wire):
    success: bool
    data: dict[str, Any] | None = None
    message: str | None = None


class PaginationPayload(_Wire):
    page: int = 1
    limit: int | None = None
    total: int | None = None
    pages: int | None = None
    has_more: bool | None = Field(None, alias="hasMore")


class UserPayload(_Wire):
    id: str = Field(alias="_id", min_length=1)
    username: str = ""
    display_name: str = Field("", alias="displayName")
    avatar: str | None = None
    status: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _bare_id(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"_id": data}
        if isinstance(data, dict) and "_id" not in data and "id" in data:
            return {**data, "_id": data["id"]}
        return data

    def to_entity(self) -> UserRef:
        return UserRef(
            id=self.id,
            username=self.username,
            display_name=self.display_name,
            avatar=self.avatar,
            status=self.status,
        )


class LastMessagePayload(_Wire):
    id: str = Field(alias="_id", min_length=1)
    text: str = ""
    sender: str
    created_at: datetime = Field(alias="createdAt")

    unwrap_sender = field_validator("sender", mode="before")(_ref_id)

    def to_summary(self) -> MessageSummary:
        return MessageSummary(
            message_id=self.id,
            text=self.text,
            sender_id=self.sender,
            created_at=as_utc(self.created_at),
        )


class ConversationPayload(_Wire):
    id: str = Field(alias="_id", min_length=1)
    type: ConversationKind
    participants: list[UserPayload]
    name: str | None = None
    description: str | None = None
    avatar: str | None = None
    admins: list[UserPayload] = []
    last_message: LastMessagePayload | None = Field(None, alias="lastMessage")
    last_message_at: datetime | None = Field(None, alias="lastMessageAt")
    unread_count: int = Field(0, alias="unreadCount", ge=0)
    updated_at: datetime | None = Field(None, alias="updatedAt")

    @field_validator("unread_count", mode="before")
    @classmethod
    def _null_unread(cls, value: Any) -> Any:
        return 0 if value is None else value

    @model_validator(mode="after")
    def _direct_has_two(self) -> ConversationPayload:
        if self.type == ConversationKind.DIRECT and len(self.participants) != 2:
            raise ValueError("direct conversation must have exactly two participants")
        return self

    def to_entity(self) -> Conversation:
        summary = self.last_message.to_summary() if self.last_message else None
        activity = self.last_message_at or (summary.created_at if summary else None) or self.updated_at
        return Conversation(
            id=self.id,
            kind=self.type,
            participants=tuple(p.to_entity() for p in self.participants),
            name=self.name,
            description=self.description,
            avatar=self.avatar,
            admin_ids=tuple(a.id for a in self.admins),
            last_message=summary,
            last_activity=as_utc(activity) if activity else None,
            unread_count=self.unread_count,
        )


class ReceiptPayload(_Wire):
    user: str
    at: datetime

    unwrap_user = field_validator("user", mode="before")(_ref_id)

    @model_validator(mode="before")
    @classmethod
    def _timestamp(cls, data: Any) -> Any:
        if isinstance(data, dict) and "at" not in data:
            return {**data, "at": data.get("readAt") or data.get("deliveredAt")}
        return data

    def to_entity(self) -> Receipt:
        return Receipt(user_id=self.user, at=as_utc(self.at))


class MessagePayload(_Wire):
    id: str = Field(alias="_id", min_length=1)
    conversation_id: str = Field(alias="conversationId", min_length=1)
    sender: str
    type: str = "text"
    text: str | None = None
    delivered_to: list[ReceiptPayload] = Field([], alias="deliveredTo")
    read_by: list[ReceiptPayload] = Field([], alias="readBy")
    deleted: bool = False
    edited_at: datetime | None = Field(None, alias="editedAt")
    created_at: datetime = Field(alias="createdAt")

    unwrap_refs = field_validator("sender", "conversation_id", mode="before")(_ref_id)

    def to_entity(self) -> Message:
        return Message(
            id=self.id,
            conversation_id=self.conversation_id,
            sender_id=self.sender,
            body=self.text or "",
            created_at=as_utc(self.created_at),
            type=self.type,
            delivered_to=tuple(r.to_entity() for r in self.delivered_to),
            read_by=tuple(r.to_entity() for r in self.read_by),
            deleted=self.deleted,
            edited_at=as_utc(self.edited_at) if self.edited_at else None,
        )
