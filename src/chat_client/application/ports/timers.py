from __future__ import annotations

from typing import Any, Awaitable, Callable, NewType, Protocol

TimerToken = NewType("TimerToken", int)

TimerCallback = Callable[[], Awaitable[Any] | None]


class TimerScheduler(Protocol):
    def schedule(self, delay: float, callback: TimerCallback) -> TimerToken:
        """Run callback once after delay seconds. Coroutine results are awaited."""
        ...

    def cancel(self, token: TimerToken) -> bool: ...

    def cancel_all(self) -> None: ...
