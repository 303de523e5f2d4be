"""Bounded exponential-backoff schedule for polling slow operations."""

import asyncio
import time
from collections.abc import Awaitable, Callable


class PollSchedule:
    """Async iterator over poll attempts, gated by exponential backoff.

    The first attempt is yielded immediately. Each further attempt waits
    ``delay`` seconds first, where the delay starts at ``initial_delay`` and
    doubles up to ``max_delay``. Iteration ends once ``max_attempts`` have
    been handed out or ``max_seconds`` have elapsed since the first attempt,
    whichever comes first. The last wait is shortened to end at the deadline
    and is followed by one final attempt. A schedule cannot be restarted.

    Usage:
        async for attempt in PollSchedule():
            if await check():
                break
    """

    def __init__(
        self,
        max_attempts: int = 40,
        max_seconds: float = 600.0,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.max_seconds = max_seconds
        self.max_delay = max_delay
        self._clock = clock
        self._sleep = sleep
        self._delay = initial_delay
        self._attempts = 0
        self._started: float | None = None
        self._exhausted = False

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def elapsed(self) -> float:
        if self._started is None:
            return 0.0
        return self._clock() - self._started

    def __aiter__(self):
        return self

    async def __anext__(self) -> int:
        if self._exhausted or self._attempts >= self.max_attempts:
            self._exhausted = True
            raise StopAsyncIteration

        if self._started is None:
            self._started = self._clock()
        else:
            remaining = self.max_seconds - self.elapsed()
            if remaining <= 0:
                self._exhausted = True
                raise StopAsyncIteration
            # A wait clamped to the deadline is still followed by one attempt.
            await self._sleep(min(self._delay, remaining))
            self._delay = min(self._delay * 2, self.max_delay)

        self._attempts += 1
        return self._attempts
