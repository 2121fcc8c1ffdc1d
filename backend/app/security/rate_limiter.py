"""
Sliding-window cap on OTP issuance.

Every OTP request sends an email, so requests per address are capped
within a time window independently of the failed-attempt backoff in
rate_limit.py.
"""
import time
from collections import deque
from threading import Lock
from typing import Callable, Deque, Dict


class _Bucket:
    __slots__ = ("window", "hits")

    def __init__(self, window: float):
        self.window = window
        self.hits: Deque[float] = deque()

    def drain(self, now: float) -> None:
        while self.hits and self.hits[0] <= now - self.window:
            self.hits.popleft()


class RateLimiter:
    """In-memory sliding-window limiter over '<operation>:<key>' buckets."""

    def __init__(self, clock: Callable[[], float] = time.time, sweep_interval: float = 60.0):
        self._buckets: Dict[str, _Bucket] = {}
        self._lock = Lock()
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._buckets)

    def is_allowed(
        self,
        key: str,
        operation: str,
        max_attempts: int = 5,
        window_seconds: int = 900,
    ) -> bool:
        """
        Count one `operation` by `key` if it fits in the window.

        Args:
            key: Caller identity (e.g. email address)
            operation: Operation name (e.g. 'otp:signup')
            max_attempts: Max calls allowed in the window
            window_seconds: Window length in seconds

        Returns:
            True if counted, False if the window is full
        """
        name = f"{operation}:{key}"
        now = self._clock()

        with self._lock:
            self._sweep(now)

            bucket = self._buckets.get(name)
            if bucket is None:
                bucket = self._buckets[name] = _Bucket(window_seconds)
            bucket.window = window_seconds
            bucket.drain(now)

            if len(bucket.hits) >= max_attempts:
                return False
            bucket.hits.append(now)
            return True

    def _sweep(self, now: float) -> None:
        """Drop buckets with no hits left in their window. Caller holds the lock."""
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now

        for name in list(self._buckets):
            bucket = self._buckets[name]
            bucket.drain(now)
            if not bucket.hits:
                del self._buckets[name]

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
