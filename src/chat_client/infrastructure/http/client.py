"""httpx implementation of the ChatApi port."""
from __future__ import annotations

import logging
import uuid
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from chat_client.application.dto.pagination import Page
from chat_client.application.exceptions import ApiError, NetworkError, StaleAuthError
from chat_client.domain.entities.conversation import Conversation
from chat_client.domain.entities.message import Message
from chat_client.domain.entities.user import UserRef
from chat_client.domain.value_objects.enums import MessageType
from chat_client.infrastructure.http.schemas import (
    ConversationPayload,
    Envelope,
    MessagePayload,
    PaginationPayload,
    UserPayload,
)

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

M = TypeVar("M", bound=BaseModel)


def build_http_client(
    base_url: str,
    token: str,
    *,
    timeout: float = 10.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        headers={"Authorization": f"Bearer {token}"},
        timeout=timeout,
        transport=transport,
    )


class HttpChatApi:
    """Implements application.ports.api.ChatApi."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    # -- conversations -------------------------------------------------------

    async def list_conversations(self, *, page: int = 1, limit: int = 20) -> Page[Conversation]:
        data = await self._request("GET", "/conversations", params={"page": page, "limit": limit})
        items = self._parse_items(data.get("conversations"), ConversationPayload)
        return Page(
            items=[item.to_entity() for item in items],
            page=page,
            has_more=self._has_more(data, page, limit, len(items)),
        )

    async def get_conversation(self, conversation_id: str) -> Conversation:
        data = await self._request("GET", f"/conversations/{conversation_id}")
        return self._conversation(data)

    async def create_direct_conversation(self, user_id: str) -> Conversation:
        data = await self._request("POST", "/conversations/direct", json={"userId": user_id})
        return self._conversation(data)

    async def create_group_conversation(
        self,
        name: str,
        participant_ids: list[str],
        description: str | None = None,
    ) -> Conversation:
        body: dict[str, Any] = {"name": name, "participantIds": participant_ids}
        if description is not None:
            body["description"] = description
        data = await self._request("POST", "/conversations/group", json=body)
        return self._conversation(data)

    async def update_conversation(self, conversation_id: str, changes: dict[str, Any]) -> Conversation:
        data = await self._request("PUT", f"/conversations/{conversation_id}", json=changes)
        return self._conversation(data)

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._request("DELETE", f"/conversations/{conversation_id}")

    async def add_member(self, conversation_id: str, user_id: str) -> Conversation:
        data = await self._request(
            "POST", f"/conversations/{conversation_id}/members", json={"userId": user_id},
        )
        return self._conversation(data)

    async def remove_member(self, conversation_id: str, user_id: str) -> Conversation:
        data = await self._request("DELETE", f"/conversations/{conversation_id}/members/{user_id}")
        return self._conversation(data)

    async def make_admin(self, conversation_id: str, user_id: str) -> Conversation:
        data = await self._request(
            "POST", f"/conversations/{conversation_id}/admins", json={"userId": user_id},
        )
        return self._conversation(data)

    async def mark_conversation_read(self, conversation_id: str) -> None:
        await self._request("PATCH", f"/conversations/{conversation_id}/read")

    # -- messages ------------------------------------------------------------

    async def list_messages(
        self,
        conversation_id: str,
        *,
        page: int = 1,
        limit: int = 50,
    ) -> Page[Message]:
        data = await self._request(
            "GET",
            f"/conversations/{conversation_id}/messages",
            params={"page": page, "limit": limit},
        )
        items = self._parse_items(data.get("messages"), MessagePayload)
        return Page(
            items=[item.to_entity() for item in items],
            page=page,
            has_more=self._has_more(data, page, limit, len(items)),
        )

    async def create_message(self, conversation_id: str, text: str) -> Message:
        data = await self._request(
            "POST",
            "/messages",
            json={"conversationId": conversation_id, "text": text, "type": MessageType.TEXT},
        )
        return self._message(data)

    async def update_message(self, message_id: str, text: str) -> Message:
        data = await self._request("PUT", f"/messages/{message_id}", json={"text": text})
        return self._message(data)

    async def delete_message(self, message_id: str) -> None:
        await self._request("DELETE", f"/messages/{message_id}")

    async def mark_message_read(self, message_id: str) -> None:
        await self._request("PATCH", f"/messages/{message_id}/read")

    # -- users ---------------------------------------------------------------

    async def search_users(self, query: str, *, page: int = 1, limit: int = 20) -> list[UserRef]:
        data = await self._request(
            "GET", "/auth/users/search", params={"q": query, "page": page, "limit": limit},
        )
        return [item.to_entity() for item in self._parse_items(data.get("users"), UserPayload)]

    # -- plumbing ------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        request_id = uuid.uuid4().hex
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers={REQUEST_ID_HEADER: request_id},
            )
        except httpx.TransportError as exc:
            logger.warning("%s %s [%s] unreachable: %s", method, path, request_id, exc)
            raise NetworkError(str(exc) or "Network unreachable") from exc

        logger.debug("%s %s [%s] -> %d", method, path, request_id, response.status_code)

        try:
            body = response.json()
        except ValueError:
            body = None

        envelope: Envelope | None = None
        if isinstance(body, dict):
            try:
                envelope = Envelope.model_validate(body)
            except PydanticValidationError:
                envelope = None

        message = envelope.message if envelope is not None else None
        if response.status_code == 401:
            raise StaleAuthError(message or "Unauthorized")
        if response.is_error:
            raise ApiError(message or f"HTTP {response.status_code}", response.status_code)
        if envelope is None:
            raise ApiError("Malformed response", response.status_code)
        if not envelope.success:
            raise ApiError(message or "Request failed", response.status_code)
        return envelope.data or {}

    @staticmethod
    def _parse_items(raw: Any, model: type[M]) -> list[M]:
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise ApiError("Malformed response: expected a list")
        items: list[M] = []
        for entry in raw:
            try:
                items.append(model.model_validate(entry))
            except PydanticValidationError as exc:
                logger.warning("Skipping malformed %s: %s", model.__name__, exc.errors()[:1])
        return items

    @staticmethod
    def _has_more(data: dict[str, Any], page: int, limit: int, count: int) -> bool:
        raw = data.get("pagination")
        if isinstance(raw, dict):
            try:
                pagination = PaginationPayload.model_validate(raw)
            except PydanticValidationError:
                pagination = None
            if pagination is not None:
                if pagination.has_more is not None:
                    return pagination.has_more
                if pagination.pages is not None:
                    return page < pagination.pages
        return count >= limit

    @staticmethod
    def _conversation(data: dict[str, Any]) -> Conversation:
        try:
            return ConversationPayload.model_validate(data.get("conversation")).to_entity()
        except PydanticValidationError as exc:
            raise ApiError("Malformed conversation in response") from exc

    @staticmethod
    def _message(data: dict[str, Any]) -> Message:
        try:
            return MessagePayload.model_validate(data.get("message")).to_entity()
        except PydanticValidationError as exc:
            raise ApiError("Malformed message in response") from exc
