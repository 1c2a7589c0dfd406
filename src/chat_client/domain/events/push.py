"""Decoded push-channel events, one variant per event name."""
from __future__ import annotations

from dataclasses import dataclass

from chat_client.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class ChannelConnected:
    pass


@dataclass(frozen=True, slots=True)
class ChannelDisconnected:
    pass


@dataclass(frozen=True, slots=True)
class MessageReceived:
    message: Message


@dataclass(frozen=True, slots=True)
class MessageDelivered:
    message_id: str


@dataclass(frozen=True, slots=True)
class MessageRead:
    message_id: str


@dataclass(frozen=True, slots=True)
class MessagesRead:
    conversation_id: str
    message_ids: tuple[str, ...]
    read_by: str


@dataclass(frozen=True, slots=True)
class UserTyping:
    user_id: str
    conversation_id: str
    is_typing: bool


@dataclass(frozen=True, slots=True)
class UsersOnline:
    user_ids: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class UserOnline:
    user_id: str


@dataclass(frozen=True, slots=True)
class UserOffline:
    user_id: str


PushEvent = (
    ChannelConnected
    | ChannelDisconnected
    | MessageReceived
    | MessageDelivered
    | MessageRead
    | MessagesRead
    | UserTyping
    | UsersOnline
    | UserOnline
    | UserOffline
)
