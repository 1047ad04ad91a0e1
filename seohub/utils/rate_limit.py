"""Fixed-window request rate limiting.

One counter per client key per window. The limiter is an injected instance
(created in the application lifespan and stored on app.state) so tests can
swap in their own.
"""

import asyncio
import time
from collections.abc import Callable


class FixedWindowRateLimiter:
    """Allow at most `limit` requests per key per `window_seconds`.

    Windows are aligned to multiples of window_seconds since the clock's
    epoch; the first request in a new window resets the key's count.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[int, int]] = {}  # key -> (window index, count)
        self._lock = asyncio.Lock()

    async def allow(self, key: str) -> bool:
        """Record a request for key; return False if it exceeds the limit."""
        window = int(self._clock() // self.window_seconds)
        async with self._lock:
            current_window, count = self._windows.get(key, (window, 0))
            if current_window != window:
                count = 0
            if count >= self.limit:
                self._windows[key] = (window, count)
                return False
            self._windows[key] = (window, count + 1)
            self._prune(window)
            return True

    def _prune(self, window: int) -> None:
        # Drop keys whose window has passed
        stale = [key for key, (w, _) in self._windows.items() if w < window]
        for key in stale:
            del self._windows[key]

    def reset(self) -> None:
        """Forget all counters."""
        self._windows.clear()
