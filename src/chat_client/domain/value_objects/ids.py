from __future__ import annotations

from typing import NewType

ConversationId = NewType("ConversationId", str)
MessageId = NewType("MessageId", str)
UserId = NewType("UserId", str)

PLACEHOLDER_PREFIX = "local-"


def is_placeholder(message_id: str) -> bool:
    return message_id.startswith(PLACEHOLDER_PREFIX)
