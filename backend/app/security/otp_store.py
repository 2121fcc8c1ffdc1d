"""
Key-value storage for pending one-time codes.

OTPVerifier only talks to the OTPStore interface, so a deployment running
more than one process can plug in a shared store (Redis etc.) without
touching the verification logic. The default InMemoryOTPStore lives in
process memory: entries are lost on restart and not shared between workers.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol, Tuple


@dataclass
class OTPEntry:
    code: str
    expires_at: float
    verified: bool = False
    payload: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


OTPKey = Tuple[str, str]  # (email, purpose)


class OTPStore(Protocol):
    def get(self, key: OTPKey) -> Optional[OTPEntry]: ...

    def set(self, key: OTPKey, entry: OTPEntry) -> None: ...

    def delete(self, key: OTPKey) -> None: ...


class InMemoryOTPStore:
    """
    Lock-guarded dict with TTL semantics.
    Last writer wins; an expired entry reads as missing and is evicted.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: Dict[OTPKey, OTPEntry] = {}
        self._lock = threading.RLock()
        self._clock = clock

    def get(self, key: OTPKey) -> Optional[OTPEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None

            return entry

    def set(self, key: OTPKey, entry: OTPEntry) -> None:
        with self._lock:
            self._entries[key] = entry

    def delete(self, key: OTPKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for k in expired:
                del self._entries[k]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
