"""Ordered conversation list with derived summary fields."""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable

from chat_client.domain.entities.conversation import Conversation, MessageSummary

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _activity(conversation: Conversation) -> datetime:
    return conversation.last_activity or _EPOCH


class ConversationIndex:
    """Conversations sorted by last activity, most recent first.

    Internally the most recent entry sits at the end of an OrderedDict so a
    touch is a move_to_end. Out-of-order activity falls back to a stable
    re-sort.
    """

    def __init__(self) -> None:
        self._items: OrderedDict[str, Conversation] = OrderedDict()

    @property
    def conversations(self) -> list[Conversation]:
        return list(reversed(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._items

    def get(self, conversation_id: str) -> Conversation | None:
        return self._items.get(conversation_id)

    def most_recent(self) -> Conversation | None:
        if not self._items:
            return None
        return next(reversed(self._items.values()))

    def total_unread(self) -> int:
        return sum(c.unread_count for c in self._items.values())

    def replace_all(self, conversations: Iterable[Conversation]) -> None:
        # Stable on ties, so equal activity keeps the server's order.
        ordered = sorted(conversations, key=_activity, reverse=True)
        self._items = OrderedDict((c.id, c) for c in reversed(ordered))

    def upsert(self, conversation: Conversation) -> None:
        """Insert or replace a conversation, placing it by its activity."""
        self._items[conversation.id] = conversation
        self._resort()

    def remove(self, conversation_id: str) -> bool:
        return self._items.pop(conversation_id, None) is not None

    def touch(
        self,
        conversation_id: str,
        summary: MessageSummary,
        is_from_self: bool,
        is_open: bool,
    ) -> Conversation | None:
        """Record a new message: summary, activity, unread, move-to-front.

        Return the updated conversation, or None if it is unknown.
        """
        current = self._items.get(conversation_id)
        if current is None:
            return None

        unread = current.unread_count
        if not is_from_self and not is_open:
            unread += 1

        updated = replace(current, unread_count=unread)
        if current.last_activity is None or summary.created_at >= current.last_activity:
            updated = replace(updated, last_message=summary, last_activity=summary.created_at)

        self._items[conversation_id] = updated
        self._reposition(conversation_id)
        return updated

    def reset_unread(self, conversation_id: str) -> int:
        """Zero the unread counter. Return the previous value."""
        current = self._items.get(conversation_id)
        if current is None or current.unread_count == 0:
            return 0
        self._items[conversation_id] = replace(current, unread_count=0)
        return current.unread_count

    def restore_unread(self, conversation_id: str, count: int) -> None:
        current = self._items.get(conversation_id)
        if current is None:
            return
        self._items[conversation_id] = replace(
            current, unread_count=current.unread_count + max(count, 0),
        )

    def refresh_last_message(self, conversation_id: str, message_id: str, summary: MessageSummary) -> None:
        """Rewrite the summary if it still points at message_id.

        The server timestamp replaces the local one, so the activity may move
        backwards when the local clock runs ahead.
        """
        current = self._items.get(conversation_id)
        if current is None or current.last_message is None:
            return
        if current.last_message.message_id != message_id:
            return
        self._items[conversation_id] = replace(
            current, last_message=summary, last_activity=summary.created_at,
        )
        self._resort()

    def revert_last_message(self, conversation_id: str, placeholder_id: str, previous: Conversation) -> None:
        """Undo an optimistic touch if nothing newer replaced it."""
        current = self._items.get(conversation_id)
        if current is None or current.last_message is None:
            return
        if current.last_message.message_id != placeholder_id:
            return
        self._items[conversation_id] = replace(
            current,
            last_message=previous.last_message,
            last_activity=previous.last_activity,
        )
        self._resort()

    def _reposition(self, conversation_id: str) -> None:
        conversation = self._items[conversation_id]
        newest = self.most_recent()
        if newest is None or newest.id == conversation_id or _activity(conversation) >= _activity(newest):
            self._items.move_to_end(conversation_id)
        else:
            self._resort()

    def _resort(self) -> None:
        ordered = sorted(self._items.values(), key=_activity)
        self._items = OrderedDict((c.id, c) for c in ordered)
