"""Single entry point for every state mutation of the chat client.

REST responses, push events and local user actions all pass through
ReconciliationController, which owns the conversation index, the open
conversation's message store, presence, typing state and the dedup cache.
Everything runs on one event loop; suspension happens only at network calls,
so every coroutine re-checks the selection after awaiting.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import replace
from typing import Any, Callable

from chat_client.application.dto.outcomes import Outcome, SendOutcome
from chat_client.application.dto.view import ChatViewState
from chat_client.application.exceptions import AppError, StaleAuthError, ValidationError
from chat_client.application.ports.api import ChatApi
from chat_client.application.ports.clock import Clock, SystemClock
from chat_client.application.ports.push import PushChannel
from chat_client.application.ports.timers import TimerScheduler
from chat_client.domain.entities.conversation import Conversation, MessageSummary
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
from chat_client.domain.value_objects.ids import PLACEHOLDER_PREFIX
from chat_client.services.conversation_display import other_participant
from chat_client.services.conversation_index import ConversationIndex
from chat_client.services.message_store import MessageStore
from chat_client.services.presence_tracker import PresenceTracker
from chat_client.services.recent_ids import RecentIdCache
from chat_client.services.typing_signal import OutboundTypingSignal
from chat_client.services.typing_tracker import TypingTracker

logger = logging.getLogger(__name__)

ChangeListener = Callable[[ChatViewState], Any]


def _summary(message: Message) -> MessageSummary:
    return MessageSummary(
        message_id=message.id,
        text=message.body,
        sender_id=message.sender_id,
        created_at=message.created_at,
    )


class ReconciliationController:
    def __init__(
        self,
        api: ChatApi,
        channel: PushChannel,
        local_user_id: str,
        scheduler: TimerScheduler,
        *,
        clock: Clock | None = None,
        recent_ids_capacity: int = 1000,
        typing_expiry_seconds: float = 2.0,
        typing_idle_seconds: float = 2.0,
        conversations_page_size: int = 20,
        messages_page_size: int = 50,
        relay_sent_messages: bool = False,
        on_change: ChangeListener | None = None,
        on_auth_expired: Callable[[], Any] | None = None,
    ) -> None:
        self._api = api
        self._channel = channel
        self._local_user_id = local_user_id
        self._clock = clock or SystemClock()
        self._conversations_page_size = conversations_page_size
        self._messages_page_size = messages_page_size
        self._relay_sent_messages = relay_sent_messages
        self._on_change = on_change
        self._on_auth_expired = on_auth_expired

        self._index = ConversationIndex()
        self._store = MessageStore()
        self._presence = PresenceTracker()
        self._typing = TypingTracker(self._clock, scheduler, typing_expiry_seconds)
        self._typing_signal = OutboundTypingSignal(self._send_typing, scheduler, typing_idle_seconds)
        self._recent = RecentIdCache(recent_ids_capacity)

        self._selected: str | None = None
        self._selection_seq = 0
        self._history_page = 1
        self._history_has_more = False
        # Push messages seen while each conversation-list fetch is in flight.
        self._list_buffers: dict[int, list[Message]] = {}
        self._list_seq = 0
        self._list_applied_seq = 0
        # Unread counts zeroed optimistically, restored if the request fails.
        self._read_rollback: dict[str, int] = {}
        self._connected = False
        self._was_disconnected = False

        channel.set_listener(self.handle_event)

    # -- read access ---------------------------------------------------------

    @property
    def local_user_id(self) -> str:
        return self._local_user_id

    @property
    def selected_conversation_id(self) -> str | None:
        return self._selected

    @property
    def index(self) -> ConversationIndex:
        return self._index

    @property
    def store(self) -> MessageStore:
        return self._store

    @property
    def presence(self) -> PresenceTracker:
        return self._presence

    @property
    def typing(self) -> TypingTracker:
        return self._typing

    @property
    def connected(self) -> bool:
        return self._connected

    def snapshot(self) -> ChatViewState:
        messages = self._store.messages if self._store.conversation_id == self._selected else ()
        return ChatViewState(
            conversations=tuple(self._index.conversations),
            selected_conversation_id=self._selected,
            messages=messages,
            online_user_ids=self._presence.online,
            typing=self._typing.snapshot(),
            connected=self._connected,
            has_older_messages=self._history_has_more,
        )

    # -- conversations -------------------------------------------------------

    async def load_conversations(self) -> Outcome:
        """Replace the conversation list from REST, keeping interleaved pushes."""
        self._list_seq += 1
        seq = self._list_seq
        buffer: list[Message] = []
        self._list_buffers[seq] = buffer
        try:
            page = await self._api.list_conversations(page=1, limit=self._conversations_page_size)
        except AppError as exc:
            return self._failure("load conversations", exc)
        finally:
            del self._list_buffers[seq]

        if seq < self._list_applied_seq:
            logger.debug("Discarding stale conversation list %d (applied %d)", seq, self._list_applied_seq)
            return Outcome()
        self._list_applied_seq = seq

        self._index.replace_all(page.items)
        for message in buffer:
            conversation = self._index.get(message.conversation_id)
            # The snapshot already counts messages older than its own activity.
            if conversation is None:
                continue
            if conversation.last_activity is None or conversation.last_activity < message.created_at:
                self._touch(message)

        if self._selected is not None and self._selected not in self._index:
            logger.info("Selected conversation %s is gone, clearing selection", self._selected)
            self._selected = None
            self._store.clear()
        self._emit()

        if self._selected is None:
            newest = self._index.most_recent()
            if newest is not None:
                return await self.select_conversation(newest.id)
        return Outcome()

    async def select_conversation(self, conversation_id: str) -> Outcome:
        previous = self._selected
        if previous is not None and previous != conversation_id:
            self._read_rollback.pop(previous, None)

        self._selected = conversation_id
        self._selection_seq += 1
        seq = self._selection_seq
        self._store.replace_all(conversation_id, ())
        self._history_page = 1
        self._history_has_more = False

        unread = self._optimistic_read(conversation_id)
        self._emit()

        if unread:
            history, read = await asyncio.gather(
                self._fetch_history(conversation_id, seq),
                self._confirm_read(conversation_id),
            )
            return history if not history.ok else read
        return await self._fetch_history(conversation_id, seq)

    async def mark_read(self, conversation_id: str) -> Outcome:
        """Idempotent; no request is made when nothing is unread."""
        if not self._optimistic_read(conversation_id):
            return Outcome()
        self._emit()
        return await self._confirm_read(conversation_id)

    async def resync(self) -> Outcome:
        """Rebuild server-derived state after the channel came back."""
        previous = self._selected
        outcome = await self.load_conversations()
        # A selection made by the load has already fetched its history.
        if not outcome.ok or self._selected is None or self._selected != previous:
            return outcome
        return await self._fetch_history(self._selected, self._selection_seq)

    async def load_older_messages(self) -> Outcome:
        conversation_id = self._selected
        if conversation_id is None or not self._history_has_more:
            return Outcome()
        seq = self._selection_seq
        try:
            page = await self._api.list_messages(
                conversation_id, page=self._history_page + 1, limit=self._messages_page_size,
            )
        except AppError as exc:
            return self._failure("load older messages", exc)
        if seq != self._selection_seq:
            return Outcome()
        added = self._store.merge(page.items)
        self._history_page = page.page
        self._history_has_more = page.has_more
        logger.debug("Merged %d older messages into %s", added, conversation_id)
        self._emit()
        return Outcome()

    async def start_direct_conversation(self, user_id: str) -> Outcome:
        try:
            conversation = await self._api.create_direct_conversation(user_id)
        except AppError as exc:
            return self._failure("start conversation", exc)
        self._adopt(conversation)
        return await self.select_conversation(conversation.id)

    async def create_group_conversation(
        self,
        name: str,
        participant_ids: list[str],
        description: str | None = None,
    ) -> Outcome:
        if not name.strip():
            raise ValidationError("Group name is required")
        if not participant_ids:
            raise ValidationError("A group needs at least one other participant")
        try:
            conversation = await self._api.create_group_conversation(
                name.strip(), participant_ids, description,
            )
        except AppError as exc:
            return self._failure("create group", exc)
        self._adopt(conversation)
        return await self.select_conversation(conversation.id)

    async def update_conversation(
        self,
        conversation_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        avatar: str | None = None,
    ) -> Outcome:
        changes = {
            key: value
            for key, value in (("name", name), ("description", description), ("avatar", avatar))
            if value is not None
        }
        if not changes:
            raise ValidationError("Nothing to update")
        try:
            conversation = await self._api.update_conversation(conversation_id, changes)
        except AppError as exc:
            return self._failure("update conversation", exc)
        self._adopt(conversation)
        self._emit()
        return Outcome()

    async def delete_conversation(self, conversation_id: str) -> Outcome:
        try:
            await self._api.delete_conversation(conversation_id)
        except AppError as exc:
            return self._failure("delete conversation", exc)
        self._index.remove(conversation_id)
        if self._selected == conversation_id:
            self._selected = None
            self._selection_seq += 1
            self._store.clear()
            self._history_has_more = False
        self._emit()
        return Outcome()

    async def add_member(self, conversation_id: str, user_id: str) -> Outcome:
        return await self._membership("add member", self._api.add_member, conversation_id, user_id)

    async def remove_member(self, conversation_id: str, user_id: str) -> Outcome:
        return await self._membership("remove member", self._api.remove_member, conversation_id, user_id)

    async def make_admin(self, conversation_id: str, user_id: str) -> Outcome:
        return await self._membership("make admin", self._api.make_admin, conversation_id, user_id)

    # -- messages ------------------------------------------------------------

    async def ingest_push_message(self, message: Message) -> bool:
        """Apply a pushed message exactly once. Return False for a repeat."""
        if not self._recent.add(message.id):
            logger.debug("Duplicate push message %s ignored", message.id)
            return False

        for buffer in self._list_buffers.values():
            buffer.append(message)

        conversation_id = message.conversation_id
        from_self = message.sender_id == self._local_user_id
        is_open = conversation_id == self._selected
        known = self._touch(message) is not None

        if is_open and self._store.conversation_id == conversation_id:
            if not (from_self and self._store.reconcile_echo(message) is not None):
                self._store.append(message)
            self._typing.clear_typing(message.sender_id, conversation_id)
        self._emit()

        if not known:
            await self._fetch_unknown_conversation(conversation_id)
        if is_open and not from_self:
            await self._request_read(conversation_id)
        return True

    async def send_message(self, conversation_id: str, text: str) -> SendOutcome:
        """Optimistically insert, create via REST, then reconcile or roll back."""
        if not text.strip():
            raise ValidationError("Message text is empty")

        placeholder = Message(
            id=f"{PLACEHOLDER_PREFIX}{uuid.uuid4().hex}",
            conversation_id=conversation_id,
            sender_id=self._local_user_id,
            body=text,
            created_at=self._clock.now(),
        )
        previous = self._index.get(conversation_id)
        is_open = conversation_id == self._selected
        if is_open:
            self._store.append(placeholder)
        self._index.touch(conversation_id, _summary(placeholder), True, is_open)
        self._emit()

        await self._typing_signal.stop(conversation_id)

        try:
            confirmed = await self._api.create_message(conversation_id, text)
        except AppError as exc:
            self._store.remove(placeholder.id)
            if previous is not None:
                self._index.revert_last_message(conversation_id, placeholder.id, previous)
            self._emit()
            failed = self._failure("send message", exc)
            return SendOutcome(
                ok=False,
                error=failed.error,
                auth_expired=failed.auth_expired,
                restored_text=text,
            )

        self._recent.add(confirmed.id)
        if self._store.conversation_id == conversation_id:
            self._store.confirm(placeholder.id, confirmed)
        self._index.refresh_last_message(conversation_id, placeholder.id, _summary(confirmed))
        self._emit()

        if self._relay_sent_messages:
            await self._relay(confirmed)
        return SendOutcome(ok=True, message=confirmed)

    async def edit_message(self, message_id: str, text: str) -> Outcome:
        if not text.strip():
            raise ValidationError("Message text is empty")
        try:
            updated = await self._api.update_message(message_id, text)
        except AppError as exc:
            return self._failure("edit message", exc)
        self._store.update(updated)
        self._index.refresh_last_message(updated.conversation_id, updated.id, _summary(updated))
        self._emit()
        return Outcome()

    async def delete_message(self, message_id: str) -> Outcome:
        try:
            await self._api.delete_message(message_id)
        except AppError as exc:
            return self._failure("delete message", exc)
        existing = self._store.get(message_id)
        if existing is not None:
            self._store.update(replace(existing, deleted=True))
            self._emit()
        return Outcome()

    async def mark_message_read(self, message_id: str) -> Outcome:
        try:
            await self._api.mark_message_read(message_id)
        except AppError as exc:
            return self._failure("mark message read", exc)
        if self._store.apply_read_receipts([message_id], self._local_user_id, self._clock.now()):
            self._emit()
        return Outcome()

    def apply_read_receipts(self, conversation_id: str, message_ids: list[str], reader: str) -> None:
        if reader == self._local_user_id:
            # Read on another device of the local user.
            self._read_rollback.pop(conversation_id, None)
            self._index.reset_unread(conversation_id)
        if self._store.conversation_id == conversation_id:
            self._store.apply_read_receipts(message_ids, reader, self._clock.now())
        self._emit()

    # -- typing --------------------------------------------------------------

    async def notify_typing(self, conversation_id: str) -> None:
        """Called on every local keystroke."""
        await self._typing_signal.keystroke(conversation_id)

    async def stop_typing(self, conversation_id: str) -> None:
        await self._typing_signal.stop(conversation_id)

    # -- push events ---------------------------------------------------------

    async def handle_event(self, event: PushEvent) -> None:
        if isinstance(event, MessageReceived):
            await self.ingest_push_message(event.message)

        elif isinstance(event, MessagesRead):
            self.apply_read_receipts(event.conversation_id, list(event.message_ids), event.read_by)

        elif isinstance(event, MessageRead):
            self._apply_counterpart_receipt(event.message_id, read=True)

        elif isinstance(event, MessageDelivered):
            self._apply_counterpart_receipt(event.message_id, read=False)

        elif isinstance(event, UserTyping):
            if event.user_id == self._local_user_id:
                return
            if event.is_typing:
                self._typing.set_typing(event.user_id, event.conversation_id)
            else:
                self._typing.clear_typing(event.user_id, event.conversation_id)
            self._emit()

        elif isinstance(event, UsersOnline):
            self._presence.set_all(event.user_ids)
            self._emit()

        elif isinstance(event, UserOnline):
            self._presence.add(event.user_id)
            self._emit()

        elif isinstance(event, UserOffline):
            self._presence.remove(event.user_id)
            self._emit()

        elif isinstance(event, ChannelConnected):
            await self._on_connected()

        elif isinstance(event, ChannelDisconnected):
            self._on_disconnected()

        else:
            logger.warning("Unhandled push event %r", event)

    def close(self) -> None:
        """Drop transient state and pending timers owned by this controller."""
        self._typing.clear()
        self._typing_signal.reset()
        self._presence.clear()

    # -- internals -----------------------------------------------------------

    def _touch(self, message: Message) -> Conversation | None:
        return self._index.touch(
            message.conversation_id,
            _summary(message),
            message.sender_id == self._local_user_id,
            message.conversation_id == self._selected,
        )

    def _optimistic_read(self, conversation_id: str) -> int:
        count = self._index.reset_unread(conversation_id)
        if count:
            self._read_rollback[conversation_id] = self._read_rollback.get(conversation_id, 0) + count
        return count

    async def _confirm_read(self, conversation_id: str) -> Outcome:
        try:
            await self._api.mark_conversation_read(conversation_id)
        except AppError as exc:
            pending = self._read_rollback.pop(conversation_id, 0)
            if pending:
                self._index.restore_unread(conversation_id, pending)
                self._emit()
            return self._failure("mark conversation read", exc)
        self._read_rollback.pop(conversation_id, None)
        return Outcome()

    async def _request_read(self, conversation_id: str) -> None:
        try:
            await self._api.mark_conversation_read(conversation_id)
        except AppError as exc:
            self._failure("mark conversation read", exc)

    async def _fetch_history(self, conversation_id: str, seq: int) -> Outcome:
        try:
            page = await self._api.list_messages(
                conversation_id, page=1, limit=self._messages_page_size,
            )
        except AppError as exc:
            return self._failure("load messages", exc)

        if seq != self._selection_seq:
            logger.debug("Discarding stale history for %s", conversation_id)
            return Outcome()

        # Whatever reached the store during the fetch (pushes, optimistic
        # sends, confirmations) is laid back on top of the REST page.
        interleaved = self._store.messages if self._store.conversation_id == conversation_id else ()
        self._store.replace_all(conversation_id, page.items)
        self._store.merge(interleaved)
        self._history_page = page.page
        self._history_has_more = page.has_more
        self._emit()
        return Outcome()

    async def _fetch_unknown_conversation(self, conversation_id: str) -> None:
        try:
            conversation = await self._api.get_conversation(conversation_id)
        except AppError as exc:
            self._failure("fetch conversation", exc)
            return
        if conversation.id not in self._index:
            logger.info("Adopted new conversation %s from push", conversation.id)
            self._index.upsert(conversation)
            self._emit()

    async def _membership(
        self,
        action: str,
        call: Callable[[str, str], Any],
        conversation_id: str,
        user_id: str,
    ) -> Outcome:
        try:
            conversation = await call(conversation_id, user_id)
        except AppError as exc:
            return self._failure(action, exc)
        self._adopt(conversation)
        self._emit()
        return Outcome()

    def _adopt(self, conversation: Conversation) -> None:
        """Take server metadata but keep locally newer summary and unread state."""
        existing = self._index.get(conversation.id)
        if existing is not None:
            conversation = replace(conversation, unread_count=existing.unread_count)
            if existing.last_activity is not None and (
                conversation.last_activity is None or existing.last_activity > conversation.last_activity
            ):
                conversation = replace(
                    conversation,
                    last_message=existing.last_message,
                    last_activity=existing.last_activity,
                )
        self._index.upsert(conversation)

    def _apply_counterpart_receipt(self, message_id: str, *, read: bool) -> None:
        conversation = self._index.get(self._selected) if self._selected else None
        other = other_participant(conversation, self._local_user_id) if conversation else None
        if other is None:
            logger.debug("No direct counterpart for receipt on %s", message_id)
            return
        now = self._clock.now()
        if read:
            changed = self._store.apply_read_receipts([message_id], other.id, now)
        else:
            changed = self._store.apply_delivery_receipts([message_id], other.id, now)
        if changed:
            self._emit()

    async def _on_connected(self) -> None:
        self._connected = True
        logger.info("Push channel connected")
        self._emit()
        if self._was_disconnected:
            self._was_disconnected = False
            await self.resync()

    def _on_disconnected(self) -> None:
        self._connected = False
        self._was_disconnected = True
        logger.info("Push channel disconnected, dropping presence and typing state")
        self._presence.clear()
        self._typing.clear()
        self._typing_signal.reset()
        self._emit()

    async def _send_typing(self, conversation_id: str, is_typing: bool) -> None:
        if not self._channel.connected:
            return
        try:
            await self._channel.send_typing(conversation_id, is_typing)
        except AppError as exc:
            logger.warning("Typing signal for %s not sent: %s", conversation_id, exc.detail)

    async def _relay(self, message: Message) -> None:
        conversation = self._index.get(message.conversation_id)
        other = other_participant(conversation, self._local_user_id) if conversation else None
        receiver_id = other.id if other is not None else message.conversation_id
        try:
            await self._channel.send_message(message, receiver_id)
        except AppError as exc:
            logger.warning("Relay of %s failed: %s", message.id, exc.detail)

    def _failure(self, action: str, exc: AppError) -> Outcome:
        if isinstance(exc, StaleAuthError):
            logger.warning("%s rejected: session expired", action)
            if self._on_auth_expired is not None:
                self._on_auth_expired()
            return Outcome(ok=False, error=exc.detail or "Session expired", auth_expired=True)
        logger.warning("%s failed: %s", action, exc.detail)
        return Outcome(ok=False, error=exc.detail or f"Could not {action}")

    def _emit(self) -> None:
        if self._on_change is not None:
            self._on_change(self.snapshot())
