"""Derived labels for a conversation as seen by the local user."""
from __future__ import annotations

from chat_client.domain.entities.conversation import Conversation
from chat_client.domain.entities.user import UserRef
from chat_client.domain.value_objects.enums import ConversationKind
from chat_client.services.presence_tracker import PresenceTracker

GROUP_FALLBACK_TITLE = "Group"
UNKNOWN_TITLE = "Unknown"


def other_participant(conversation: Conversation, local_user_id: str) -> UserRef | None:
    if conversation.kind == ConversationKind.GROUP:
        return None
    for participant in conversation.participants:
        if participant.id != local_user_id:
            return participant
    return None


def conversation_title(conversation: Conversation, local_user_id: str) -> str:
    if conversation.kind == ConversationKind.GROUP:
        return conversation.name or GROUP_FALLBACK_TITLE
    other = other_participant(conversation, local_user_id)
    if other is None:
        return UNKNOWN_TITLE
    return other.display_name or other.username or UNKNOWN_TITLE


def conversation_avatar(conversation: Conversation, local_user_id: str) -> str:
    """Avatar URL, or a single initial when there is none."""
    if conversation.kind == ConversationKind.GROUP:
        return conversation.avatar or (conversation.name or "G")[0]
    other = other_participant(conversation, local_user_id)
    if other is None:
        return "?"
    return other.avatar or (other.display_name or other.username or "?")[0]


def is_conversation_online(
    conversation: Conversation,
    local_user_id: str,
    presence: PresenceTracker,
) -> bool:
    other = other_participant(conversation, local_user_id)
    return other is not None and presence.is_online(other.id)
