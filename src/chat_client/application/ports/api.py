from __future__ import annotations

from typing import Any, Protocol

from chat_client.application.dto.pagination import Page
from chat_client.domain.entities.conversation import Conversation
from chat_client.domain.entities.message import Message
from chat_client.domain.entities.user import UserRef


class ChatApi(Protocol):
    """Request/response side of the chat backend.

    Every method raises NetworkError, StaleAuthError or ApiError on failure.
    """

    async def list_conversations(self, *, page: int = 1, limit: int = 20) -> Page[Conversation]: ...

    async def get_conversation(self, conversation_id: str) -> Conversation: ...

    async def create_direct_conversation(self, user_id: str) -> Conversation: ...

    async def create_group_conversation(
        self,
        name: str,
        participant_ids: list[str],
        description: str | None = None,
    ) -> Conversation: ...

    async def update_conversation(self, conversation_id: str, changes: dict[str, Any]) -> Conversation: ...

    async def delete_conversation(self, conversation_id: str) -> None: ...

    async def add_member(self, conversation_id: str, user_id: str) -> Conversation: ...

    async def remove_member(self, conversation_id: str, user_id: str) -> Conversation: ...

    async def make_admin(self, conversation_id: str, user_id: str) -> Conversation: ...

    async def list_messages(
        self,
        conversation_id: str,
        *,
        page: int = 1,
        limit: int = 50,
    ) -> Page[Message]: ...

    async def create_message(self, conversation_id: str, text: str) -> Message: ...

    async def update_message(self, message_id: str, text: str) -> Message: ...

    async def delete_message(self, message_id: str) -> None: ...

    async def mark_conversation_read(self, conversation_id: str) -> None: ...

    async def mark_message_read(self, message_id: str) -> None: ...

    async def search_users(self, query: str, *, page: int = 1, limit: int = 20) -> list[UserRef]: ...
