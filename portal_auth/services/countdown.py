"""Second-resolution countdowns used for lockouts and resend cooldowns."""

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class Countdown:
    """A deadline measured on a monotonic clock.

    ``remaining`` is always derived from the clock, so callers that only poll
    see the same value as callers driven by ``start``.
    """

    def __init__(self, seconds: int, clock: Clock = time.monotonic):
        self.seconds = max(int(seconds), 0)
        self._clock = clock
        self._deadline = clock() + self.seconds
        self._task: asyncio.Task | None = None

    @property
    def remaining(self) -> int:
        return max(0, math.ceil(self._deadline - self._clock()))

    @property
    def expired(self) -> bool:
        return self.remaining == 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(
        self,
        on_tick: Callable[[int], None] | None = None,
        on_expire: Callable[[], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> asyncio.Task:
        """Tick once per second on the running loop until the deadline."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(
            self._run(on_tick, on_expire, sleep)
        )
        return self._task

    async def _run(self, on_tick, on_expire, sleep) -> None:
        while not self.expired:
            await sleep(1)
            remaining = self.remaining
            if on_tick:
                on_tick(remaining)
        self._task = None
        if on_expire:
            on_expire()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
