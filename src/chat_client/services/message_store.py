"""Ordered message set for the open conversation."""
from __future__ import annotations

import bisect
from dataclasses import replace
from datetime import datetime
from typing import Iterable

from chat_client.domain.entities.message import Message, Receipt


def _created_at(message: Message) -> datetime:
    return message.created_at


class MessageStore:
    """Messages of exactly one conversation.

    Entries are kept ascending by created_at. Equal timestamps keep arrival
    order, so the later-delivered message sorts after the earlier one.
    Ids are unique within the store.
    """

    def __init__(self) -> None:
        self._conversation_id: str | None = None
        self._messages: list[Message] = []
        self._by_id: dict[str, Message] = {}

    @property
    def conversation_id(self) -> str | None:
        return self._conversation_id

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._by_id

    def get(self, message_id: str) -> Message | None:
        return self._by_id.get(message_id)

    def pending(self) -> list[Message]:
        return [m for m in self._messages if m.is_pending]

    def replace_all(self, conversation_id: str | None, messages: Iterable[Message]) -> None:
        self._conversation_id = conversation_id
        self._messages = []
        self._by_id = {}
        for message in sorted(messages, key=_created_at):
            if message.id in self._by_id:
                continue
            self._messages.append(message)
            self._by_id[message.id] = message

    def clear(self) -> None:
        self.replace_all(None, ())

    def append(self, message: Message) -> bool:
        """Insert message at its timestamp position. Return False if the id exists."""
        if message.id in self._by_id:
            return False
        bisect.insort_right(self._messages, message, key=_created_at)
        self._by_id[message.id] = message
        return True

    def merge(self, messages: Iterable[Message]) -> int:
        """Fold an older history page in. Return how many entries were new."""
        added = 0
        for message in messages:
            if self.append(message):
                added += 1
        return added

    def remove(self, message_id: str) -> bool:
        message = self._by_id.pop(message_id, None)
        if message is None:
            return False
        self._messages.remove(message)
        return True

    def update(self, message: Message) -> bool:
        """Swap in a new version of an existing entry."""
        if message.id not in self._by_id:
            return False
        self.remove(message.id)
        self.append(message)
        return True

    def confirm(self, placeholder_id: str, confirmed: Message) -> bool:
        """Replace an optimistic entry with the server copy.

        If the server copy is already present (its push echo won the race)
        the placeholder is just dropped. Return True if the store changed.
        """
        removed = self.remove(placeholder_id)
        added = self.append(confirmed)
        return removed or added

    def reconcile_echo(self, message: Message) -> str | None:
        """Match a pushed copy of a local send against its optimistic entry.

        The oldest pending entry from the same sender with the same body is
        replaced. Return the placeholder id that was replaced, if any.
        """
        for entry in self._messages:
            if (
                entry.is_pending
                and entry.sender_id == message.sender_id
                and entry.body == message.body
            ):
                self.confirm(entry.id, message)
                return entry.id
        return None

    def apply_read_receipts(self, message_ids: Iterable[str], reader: str, at: datetime) -> int:
        """Add a read-by entry for reader on each matching message that lacks one."""
        changed = 0
        for message_id in message_ids:
            message = self._by_id.get(message_id)
            if message is None or message.is_read_by(reader):
                continue
            self._swap(message, replace(message, read_by=message.read_by + (Receipt(reader, at),)))
            changed += 1
        return changed

    def apply_delivery_receipts(self, message_ids: Iterable[str], recipient: str, at: datetime) -> int:
        changed = 0
        for message_id in message_ids:
            message = self._by_id.get(message_id)
            if message is None or message.is_delivered_to(recipient):
                continue
            self._swap(
                message,
                replace(message, delivered_to=message.delivered_to + (Receipt(recipient, at),)),
            )
            changed += 1
        return changed

    def _swap(self, old: Message, new: Message) -> None:
        # Same id and timestamp, so the position is unchanged.
        index = self._messages.index(old)
        self._messages[index] = new
        self._by_id[new.id] = new
