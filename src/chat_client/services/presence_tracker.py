from __future__ import annotations

from typing import Iterable


class PresenceTracker:
    """Online user ids, rebuilt from the channel's snapshot on every connect."""

    def __init__(self) -> None:
        self._online: set[str] = set()

    def set_all(self, user_ids: Iterable[str]) -> None:
        self._online = set(user_ids)

    def add(self, user_id: str) -> None:
        self._online.add(user_id)

    def remove(self, user_id: str) -> None:
        self._online.discard(user_id)

    def clear(self) -> None:
        self._online.clear()

    def is_online(self, user_id: str) -> bool:
        return user_id in self._online

    @property
    def online(self) -> frozenset[str]:
        return frozenset(self._online)

    def __len__(self) -> int:
        return len(self._online)
