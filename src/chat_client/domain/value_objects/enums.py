from __future__ import annotations

from enum import StrEnum


class ConversationKind(StrEnum):
    DIRECT = "direct"
    GROUP = "group"


class MessageType(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    VIDEO = "video"
    AUDIO = "audio"


class PushEventName(StrEnum):
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    MESSAGE_SEND = "message:send"
    MESSAGE_RECEIVED = "message:received"
    MESSAGE_DELIVERED = "message:delivered"
    MESSAGE_READ = "message:read"
    MESSAGES_READ = "messages:read"
    TYPING = "typing"
    USER_TYPING = "user:typing"
    USERS_ONLINE = "users:online"
    USER_ONLINE = "user:online"
    USER_OFFLINE = "user:offline"
