from __future__ import annotations

import asyncio

import pytest

from chat_client.infrastructure.timers import AsyncioTimerScheduler


@pytest.mark.asyncio
async def test_callback_fires_after_delay():
    scheduler = AsyncioTimerScheduler()
    fired = []

    scheduler.schedule(0.01, lambda: fired.append("x"))
    assert scheduler.pending == 1
    await asyncio.sleep(0.05)

    assert fired == ["x"]
    assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_cancelled_timer_never_fires():
    scheduler = AsyncioTimerScheduler()
    fired = []

    token = scheduler.schedule(0.01, lambda: fired.append("x"))
    assert scheduler.cancel(token) is True
    assert scheduler.cancel(token) is False
    await asyncio.sleep(0.05)

    assert fired == []


@pytest.mark.asyncio
async def test_coroutine_callback_is_awaited():
    scheduler = AsyncioTimerScheduler()
    done = asyncio.Event()

    async def _callback() -> None:
        done.set()

    scheduler.schedule(0, _callback)

    await asyncio.wait_for(done.wait(), timeout=1)


@pytest.mark.asyncio
async def test_cancel_all():
    scheduler = AsyncioTimerScheduler()
    fired = []
    scheduler.schedule(0.01, lambda: fired.append(1))
    scheduler.schedule(0.02, lambda: fired.append(2))

    scheduler.cancel_all()
    await asyncio.sleep(0.05)

    assert fired == []
    assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_failing_callback_does_not_break_later_timers():
    scheduler = AsyncioTimerScheduler()
    fired = []

    def _boom() -> None:
        raise RuntimeError("boom")

    scheduler.schedule(0, _boom)
    scheduler.schedule(0.01, lambda: fired.append("ok"))
    await asyncio.sleep(0.05)

    assert fired == ["ok"]
