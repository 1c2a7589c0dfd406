"""Push channel payload models: strict decode of inbound events, encoders for outbound."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Callable

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StringConstraints, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from chat_client.application.exceptions import PushDecodeError
from chat_client.domain.entities.message import Message
from chat_client.domain.events.push import (
    ChannelConnected,
    ChannelDisconnected,
    MessageDelivered,
    MessageRead,
    MessageReceived,
    MessagesRead,
    PushEvent,
    UserOffline,
    UserOnline,
    UsersOnline,
    UserTyping,
)
from chat_client.domain.value_objects.enums import PushEventName
from chat_client.infrastructure.http.schemas import as_utc

Id = Annotated[str, StringConstraints(strict=True, min_length=1)]

_id_adapter: TypeAdapter[str] = TypeAdapter(Id)
_id_list_adapter: TypeAdapter[list[str]] = TypeAdapter(list[Id])


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class MessageReceivedPayload(_Payload):
    id: Id
    text: str
    sender_id: Id = Field(alias="senderId")
    receiver_id: str | None = Field(None, alias="receiverId")
    conversation_id: Id = Field(alias="conversationId")
    timestamp: datetime
    type: str = "text"

    def to_entity(self) -> Message:
        return Message(
            id=self.id,
            conversation_id=self.conversation_id,
            sender_id=self.sender_id,
            body=self.text,
            created_at=as_utc(self.timestamp),
            type=self.type,
        )


class MessagesReadPayload(_Payload):
    conversation_id: Id = Field(alias="conversationId")
    message_ids: list[Id] = Field(alias="messageIds")
    read_by: Id = Field(alias="readBy")


class UserTypingPayload(_Payload):
    user_id: Id = Field(alias="userId")
    conversation_id: Id = Field(alias="conversationId")
    is_typing: StrictBool = Field(alias="isTyping")


class TypingPayload(_Payload):
    """Outbound `typing`."""

    conversation_id: str = Field(alias="conversationId")
    is_typing: bool = Field(alias="isTyping")


class MessageSendPayload(_Payload):
    """Outbound `message:send`."""

    id: str
    text: str
    sender_id: str = Field(alias="senderId")
    receiver_id: str = Field(alias="receiverId")
    conversation_id: str = Field(alias="conversationId")
    timestamp: datetime


def _message_received(payload: Any) -> PushEvent:
    return MessageReceived(MessageReceivedPayload.model_validate(payload).to_entity())


def _messages_read(payload: Any) -> PushEvent:
    data = MessagesReadPayload.model_validate(payload)
    return MessagesRead(data.conversation_id, tuple(data.message_ids), data.read_by)


def _user_typing(payload: Any) -> PushEvent:
    data = UserTypingPayload.model_validate(payload)
    return UserTyping(data.user_id, data.conversation_id, data.is_typing)


_DECODERS: dict[str, Callable[[Any], PushEvent]] = {
    PushEventName.CONNECT: lambda _: ChannelConnected(),
    PushEventName.DISCONNECT: lambda _: ChannelDisconnected(),
    PushEventName.MESSAGE_RECEIVED: _message_received,
    PushEventName.MESSAGE_DELIVERED: lambda p: MessageDelivered(_id_adapter.validate_python(p)),
    PushEventName.MESSAGE_READ: lambda p: MessageRead(_id_adapter.validate_python(p)),
    PushEventName.MESSAGES_READ: _messages_read,
    PushEventName.USER_TYPING: _user_typing,
    PushEventName.USERS_ONLINE: lambda p: UsersOnline(tuple(_id_list_adapter.validate_python(p))),
    PushEventName.USER_ONLINE: lambda p: UserOnline(_id_adapter.validate_python(p)),
    PushEventName.USER_OFFLINE: lambda p: UserOffline(_id_adapter.validate_python(p)),
}

INBOUND_EVENTS: tuple[str, ...] = tuple(str(name) for name in _DECODERS)


def decode_push_event(name: str, payload: Any = None) -> PushEvent:
    """Turn a raw channel event into its tagged variant or raise PushDecodeError."""
    decoder = _DECODERS.get(name)
    if decoder is None:
        raise PushDecodeError(f"Unknown push event {name!r}")
    try:
        return decoder(payload)
    except PydanticValidationError as exc:
        raise PushDecodeError(f"Malformed {name} payload ({exc.error_count()} errors)") from exc


def encode_typing(conversation_id: str, is_typing: bool) -> dict[str, Any]:
    return TypingPayload(conversation_id=conversation_id, is_typing=is_typing).model_dump(by_alias=True)


def encode_message_send(message: Message, receiver_id: str) -> dict[str, Any]:
    return MessageSendPayload(
        id=message.id,
        text=message.body,
        sender_id=message.sender_id,
        receiver_id=receiver_id,
        conversation_id=message.conversation_id,
        timestamp=message.created_at,
    ).model_dump(by_alias=True, mode="json")
