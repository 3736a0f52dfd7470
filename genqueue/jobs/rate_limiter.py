"""
Rate Limiter

Limits how many tasks may start within a rolling time window, to stay under
the generation provider's request rate limits.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Deque, Dict, Optional

logger = logging.getLogger(__name__)


class IntervalRateLimiter:
    """
    Rolling-window start limiter.

    Allows at most ``interval_cap`` starts within any ``interval`` seconds.
    With ``interval_cap=None`` the limiter never waits.

    Usage:
        limiter = IntervalRateLimiter(interval=1.0, interval_cap=5)

        # Wait for a start slot
        await limiter.acquire()
    """

    def __init__(self, interval: float = 1.0, interval_cap: Optional[int] = None):
        if interval <= 0:
            raise ValueError("interval must be positive")
        if interval_cap is not None and interval_cap < 1:
            raise ValueError("interval_cap must be at least 1")

        self.interval = interval
        self.interval_cap = interval_cap

        # Monotonic timestamps of recent starts
        self._starts: Deque[float] = deque()
        self._total_acquired = 0
        self._total_waited = 0.0

        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """
        Wait until a start is allowed within the window, then record it.
        """
        async with self._lock:
            wait_time = self.time_until_available()
            while wait_time > 0:
                logger.debug(f"Rate limited, waiting {wait_time:.3f}s")
                self._total_waited += wait_time
                await asyncio.sleep(wait_time)
                wait_time = self.time_until_available()

            self._starts.append(time.monotonic())
            self._total_acquired += 1

    def time_until_available(self) -> float:
        """Seconds until the next start is allowed (0 if allowed now)"""
        if self.interval_cap is None:
            return 0.0

        now = time.monotonic()
        self._expire(now)
        if len(self._starts) < self.interval_cap:
            return 0.0

        oldest = self._starts[0]
        return max(0.0, oldest + self.interval - now)

    def get_usage(self) -> Dict[str, Any]:
        """Get current usage statistics"""
        self._expire(time.monotonic())
        return {
            'starts_in_window': len(self._starts),
            'interval': self.interval,
            'interval_cap': self.interval_cap,
            'total_acquired': self._total_acquired,
            'total_wait_seconds': round(self._total_waited, 3),
        }

    def reset(self) -> None:
        """Forget recorded starts"""
        self._starts.clear()

    def _expire(self, now: float) -> None:
        while self._starts and self._starts[0] + self.interval <= now:
            self._starts.popleft()
