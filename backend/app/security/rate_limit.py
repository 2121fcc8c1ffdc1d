"""
Failed-attempt backoff for login and OTP verification.

After `max_attempts` failures a key must wait base_delay * 2^(extra failures),
capped at max_delay. A success, or a long enough quiet period, clears it.
"""
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict


@dataclass
class _Failures:
    count: int = 0
    last_time: float = 0.0


class RateLimiter:
    """In-memory exponential backoff keyed by caller (e.g. 'login:alice', 'otp:signup:a@b.c')."""

    def __init__(
        self,
        max_attempts: int = 5,
        base_delay: float = 2.0,
        max_delay: float = 300.0,
        clock: Callable[[], float] = time.time,
        sweep_interval: float = 60.0,
    ):
        self._failures: Dict[str, _Failures] = {}
        self._lock = Lock()
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._last_sweep = clock()

        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay

    def __len__(self) -> int:
        return len(self._failures)

    def _stale(self, entry: _Failures, now: float) -> bool:
        return now - entry.last_time > self.max_delay * 2

    def _sweep(self, now: float) -> None:
        """Forget keys whose failures have aged out. Caller holds the lock."""
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now
        for key in [k for k, e in self._failures.items() if self._stale(e, now)]:
            del self._failures[key]

    def _required_delay(self, count: int) -> float:
        return min(self.base_delay * (2 ** (count - self.max_attempts)), self.max_delay)

    def _remaining(self, entry: _Failures, now: float) -> float:
        if entry.count < self.max_attempts:
            return 0.0
        return max(0.0, self._required_delay(entry.count) - (now - entry.last_time))

    def is_allowed(self, key: str) -> bool:
        """False while `key` is inside its backoff period."""
        with self._lock:
            entry = self._failures.get(key)
            if entry is None:
                return True

            now = self._clock()
            if self._stale(entry, now):
                del self._failures[key]
                return True

            return self._remaining(entry, now) == 0.0

    def record_attempt(self, key: str, success: bool = False) -> None:
        with self._lock:
            if success:
                self._failures.pop(key, None)
                return

            now = self._clock()
            self._sweep(now)
            entry = self._failures.setdefault(key, _Failures())
            entry.count += 1
            entry.last_time = now

    def get_retry_after(self, key: str) -> float:
        """Seconds until `key` may try again, 0 if allowed now."""
        with self._lock:
            entry = self._failures.get(key)
            if entry is None:
                return 0.0
            return self._remaining(entry, self._clock())

    def reset(self) -> None:
        with self._lock:
            self._failures.clear()


# Login backoff shared by every request in the process
_limiter = RateLimiter()


def is_rate_limited(key: str) -> bool:
    return not _limiter.is_allowed(key)


def record_auth_attempt(key: str, success: bool = False) -> None:
    _limiter.record_attempt(key, success=success)


def get_rate_limit_delay(key: str) -> float:
    return _limiter.get_retry_after(key)


def reset_rate_limits() -> None:
    _limiter.reset()
