"""Thread-safe keyed store with per-entry TTL.

Used process-wide for robots policies; injected into crawl jobs rather than
held in module globals.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar


V = TypeVar("V")


@dataclass(frozen=True, slots=True)
class _Slot(Generic[V]):
    value: V
    stored_at: float


class TTLCache(Generic[V]):
    """Map of string keys to values that expire `ttl_seconds` after being set.

    Expired entries are evicted lazily on access. `clock` defaults to
    `time.monotonic` and can be swapped in tests.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._slots: dict[str, _Slot[V]] = {}

    def now(self) -> float:
        return self._clock()

    def get(self, key: str) -> V | None:
        """Return the live value for `key`, evicting it if expired."""

        with self._lock:
            slot = self._slots.get(key)
            if slot is None:
                return None
            if self._clock() - slot.stored_at > self.ttl_seconds:
                del self._slots[key]
                return None
            return slot.value

    def set(self, key: str, value: V) -> None:
        with self._lock:
            self._slots[key] = _Slot(value=value, stored_at=self._clock())

    def delete(self, key: str) -> None:
        with self._lock:
            self._slots.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._slots.clear()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)


__all__ = ["TTLCache"]
