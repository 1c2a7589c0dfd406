from __future__ import annotations

import pytest

from chat_client.services.recent_ids import RecentIdCache


def test_add_reports_new_and_repeated_ids():
    cache = RecentIdCache(capacity=3)

    assert cache.add("a") is True
    assert cache.add("a") is False
    assert "a" in cache
    assert len(cache) == 1


def test_oldest_id_is_evicted_first():
    cache = RecentIdCache(capacity=2)
    cache.add("a")
    cache.add("b")
    cache.add("c")

    assert "a" not in cache
    assert "b" in cache and "c" in cache
    assert len(cache) == 2


def test_repeat_does_not_refresh_position():
    cache = RecentIdCache(capacity=2)
    cache.add("a")
    cache.add("b")
    cache.add("a")
    cache.add("c")

    assert "a" not in cache


def test_zero_capacity_rejected():
    with pytest.raises(ValueError):
        RecentIdCache(capacity=0)
