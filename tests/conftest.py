"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import inspect
import itertools
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from chat_client.application.dto.pagination import Page
from chat_client.application.ports.push import PushListener
from chat_client.application.ports.timers import TimerCallback, TimerToken
from chat_client.domain.entities.conversation import Conversation, MessageSummary
from chat_client.domain.entities.message import Message
from chat_client.domain.entities.user import UserRef
from chat_client.domain.events.push import PushEvent
from chat_client.domain.value_objects.enums import ConversationKind
from chat_client.services.reconciliation import ReconciliationController

ME = "u-me"
ALICE = "u-alice"
BOB = "u-bob"

T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def make_message(
    *,
    message_id: str | None = None,
    conversation_id: str = "c-a",
    sender_id: str = ALICE,
    body: str = "hello",
    created_at: datetime | None = None,
) -> Message:
    return Message(
        id=message_id or uuid.uuid4().hex,
        conversation_id=conversation_id,
        sender_id=sender_id,
        body=body,
        created_at=created_at or T0,
    )


def make_conversation(
    conversation_id: str,
    *,
    other: str = ALICE,
    unread: int = 0,
    activity: datetime | None = None,
    kind: ConversationKind = ConversationKind.DIRECT,
    name: str | None = None,
) -> Conversation:
    if kind == ConversationKind.DIRECT:
        participants = (UserRef(id=ME, username="me"), UserRef(id=other, username=other[2:]))
    else:
        participants = (UserRef(id=ME), UserRef(id=ALICE), UserRef(id=BOB))
    last = None
    if activity is not None:
        last = MessageSummary(f"m-{conversation_id}", "earlier", other, activity)
    return Conversation(
        id=conversation_id,
        kind=kind,
        participants=participants,
        name=name,
        last_message=last,
        last_activity=activity,
        unread_count=unread,
    )


@dataclass
class FakeClock:
    current: datetime = T0

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@dataclass
class ManualScheduler:
    """TimerScheduler driven by advance() instead of the event loop."""

    clock: FakeClock
    _timers: dict[TimerToken, tuple[datetime, TimerCallback]] = field(default_factory=dict)
    _counter: Any = field(default_factory=lambda: itertools.count(1))

    def schedule(self, delay: float, callback: TimerCallback) -> TimerToken:
        token = TimerToken(next(self._counter))
        self._timers[token] = (self.clock.now() + timedelta(seconds=delay), callback)
        return token

    def cancel(self, token: TimerToken) -> bool:
        return self._timers.pop(token, None) is not None

    def cancel_all(self) -> None:
        self._timers.clear()

    @property
    def pending(self) -> int:
        return len(self._timers)

    async def advance(self, seconds: float) -> None:
        target = self.clock.now() + timedelta(seconds=seconds)
        while True:
            due = [(when, token) for token, (when, _) in self._timers.items() if when <= target]
            if not due:
                break
            when, token = min(due)
            _, callback = self._timers.pop(token)
            self.clock.current = when
            result = callback()
            if inspect.isawaitable(result):
                await result
        self.clock.current = target


@dataclass
class FakeChatApi:
    """In-memory ChatApi. Set `failures[name]` to make a call raise,
    or `gates[name]` to hold a call until the event is set."""

    conversations: list[Conversation] = field(default_factory=list)
    messages: dict[str, list[Message]] = field(default_factory=dict)
    users: list[UserRef] = field(default_factory=list)
    failures: dict[str, Exception] = field(default_factory=dict)
    gates: dict[str, asyncio.Event] = field(default_factory=dict)
    calls: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)
    has_more_messages: bool = False
    created_ids: Any = field(default_factory=lambda: itertools.count(1))

    async def _enter(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        exc = self.failures.get(name)
        if exc is not None:
            raise exc

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]

    def _find(self, conversation_id: str) -> Conversation:
        return next(c for c in self.conversations if c.id == conversation_id)

    async def list_conversations(self, *, page: int = 1, limit: int = 20) -> Page[Conversation]:
        await self._enter("list_conversations", page, limit)
        return Page(items=list(self.conversations), page=page)

    async def get_conversation(self, conversation_id: str) -> Conversation:
        await self._enter("get_conversation", conversation_id)
        return self._find(conversation_id)

    async def create_direct_conversation(self, user_id: str) -> Conversation:
        await self._enter("create_direct_conversation", user_id)
        conversation = make_conversation(f"c-{user_id}", other=user_id)
        self.conversations.append(conversation)
        return conversation

    async def create_group_conversation(
        self, name: str, participant_ids: list[str], description: str | None = None,
    ) -> Conversation:
        await self._enter("create_group_conversation", name, participant_ids, description)
        conversation = make_conversation("c-group", kind=ConversationKind.GROUP, name=name)
        self.conversations.append(conversation)
        return conversation

    async def update_conversation(self, conversation_id: str, changes: dict[str, Any]) -> Conversation:
        await self._enter("update_conversation", conversation_id, changes)
        return replace(self._find(conversation_id), **changes)

    async def delete_conversation(self, conversation_id: str) -> None:
        await self._enter("delete_conversation", conversation_id)

    async def add_member(self, conversation_id: str, user_id: str) -> Conversation:
        await self._enter("add_member", conversation_id, user_id)
        return self._find(conversation_id)

    async def remove_member(self, conversation_id: str, user_id: str) -> Conversation:
        await self._enter("remove_member", conversation_id, user_id)
        return self._find(conversation_id)

    async def make_admin(self, conversation_id: str, user_id: str) -> Conversation:
        await self._enter("make_admin", conversation_id, user_id)
        return self._find(conversation_id)

    async def list_messages(self, conversation_id: str, *, page: int = 1, limit: int = 50) -> Page[Message]:
        await self._enter("list_messages", conversation_id, page, limit)
        return Page(
            items=list(self.messages.get(conversation_id, [])),
            page=page,
            has_more=self.has_more_messages,
        )

    async def create_message(self, conversation_id: str, text: str) -> Message:
        await self._enter("create_message", conversation_id, text)
        return make_message(
            message_id=f"srv-{next(self.created_ids)}",
            conversation_id=conversation_id,
            sender_id=ME,
            body=text,
            created_at=T0 + timedelta(minutes=5),
        )

    async def update_message(self, message_id: str, text: str) -> Message:
        await self._enter("update_message", message_id, text)
        for messages in self.messages.values():
            for message in messages:
                if message.id == message_id:
                    return replace(message, body=text, edited_at=T0)
        raise KeyError(message_id)

    async def delete_message(self, message_id: str) -> None:
        await self._enter("delete_message", message_id)

    async def mark_conversation_read(self, conversation_id: str) -> None:
        await self._enter("mark_conversation_read", conversation_id)

    async def mark_message_read(self, message_id: str) -> None:
        await self._enter("mark_message_read", message_id)

    async def search_users(self, query: str, *, page: int = 1, limit: int = 20) -> list[UserRef]:
        await self._enter("search_users", query)
        return [u for u in self.users if query.lower() in u.username.lower()]


@dataclass
class FakePushChannel:
    connected: bool = True
    listener: PushListener | None = None
    sent: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def set_listener(self, listener: PushListener) -> None:
        self.listener = listener

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def send_typing(self, conversation_id: str, is_typing: bool) -> None:
        self.sent.append(("typing", {"conversationId": conversation_id, "isTyping": is_typing}))

    async def send_message(self, message: Message, receiver_id: str) -> None:
        self.sent.append(("message:send", {"id": message.id, "receiverId": receiver_id}))

    async def push(self, event: PushEvent) -> None:
        assert self.listener is not None
        await self.listener(event)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock: FakeClock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def api() -> FakeChatApi:
    return FakeChatApi()


@pytest.fixture
def channel() -> FakePushChannel:
    return FakePushChannel()


@pytest.fixture
def controller(api, channel, scheduler, clock) -> ReconciliationController:
    return ReconciliationController(api, channel, ME, scheduler, clock=clock)
