from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable


@dataclass
class RateLimiter:
    """Simple blocking sliding-window rate limiter.

    The limiter sleeps when more than max_calls were made within period_seconds.
    """

    max_calls: int
    period_seconds: float

    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    _calls: deque[float] = field(default_factory=deque, init=False, repr=False)

    def acquire(self) -> None:
        if self.max_calls <= 0:
            return

        now = self.clock()
        self._evict(now)

        if len(self._calls) < self.max_calls:
            self._calls.append(now)
            return

        sleep_for = self.period_seconds - (now - self._calls[0])
        if sleep_for > 0:
            self.sleep(sleep_for)

        now = self.clock()
        self._evict(now)
        self._calls.append(now)

    def _evict(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.period_seconds:
            self._calls.popleft()
