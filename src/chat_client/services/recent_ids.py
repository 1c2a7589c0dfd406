from __future__ import annotations

from collections import OrderedDict


class RecentIdCache:
    """Fixed-capacity set of recently processed ids, oldest evicted first."""

    def __init__(self, capacity: int = 1000) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._ids: OrderedDict[str, None] = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def add(self, item_id: str) -> bool:
        """Record item_id. Return False if it was already present."""
        if item_id in self._ids:
            return False
        self._ids[item_id] = None
        while len(self._ids) > self._capacity:
            self._ids.popitem(last=False)
        return True

    def discard(self, item_id: str) -> None:
        self._ids.pop(item_id, None)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)
