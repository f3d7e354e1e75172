"""FIFO frontier with a monotonically growing discovered set."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .url import canonicalize


class EnqueueStatus(str, Enum):
    """Result status for frontier enqueue attempts."""

    ENQUEUED = "enqueued"
    SKIPPED_SEEN = "skipped_seen"
    SKIPPED_BUDGET = "skipped_budget"


@dataclass(frozen=True, slots=True)
class EnqueueResult:
    """Outcome of one enqueue attempt."""

    status: EnqueueStatus
    canonical_url: str

    @property
    def accepted(self) -> bool:
        return self.status == EnqueueStatus.ENQUEUED


class Frontier:
    """Breadth-first queue of canonical URLs awaiting fetch.

    - URLs are canonicalized on entry and marked discovered at enqueue time,
      so a URL is never queued twice in one job.
    - When `discovery_limit` is set, enqueue stops once the discovered set
      reaches it.
    """

    def __init__(self, *, discovery_limit: int | None = None) -> None:
        if discovery_limit is not None and discovery_limit <= 0:
            raise ValueError("discovery_limit must be > 0 when set")
        self.discovery_limit = discovery_limit

        self._lock = threading.Lock()
        self._queue: deque[str] = deque()
        self._discovered: set[str] = set()

        self._enqueued_count = 0
        self._dequeued_count = 0
        self._skipped_seen_count = 0
        self._skipped_budget_count = 0

    def seed(self, url: str) -> EnqueueResult:
        """Seed the frontier with the start URL. The seed ignores the limit."""

        canonical = canonicalize(url)
        with self._lock:
            if canonical in self._discovered:
                self._skipped_seen_count += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_SEEN, canonical)
            self._accept(canonical)
        return EnqueueResult(EnqueueStatus.ENQUEUED, canonical)

    def is_discovered(self, url: str) -> bool:
        canonical = canonicalize(url)
        with self._lock:
            return canonical in self._discovered

    def push(self, url: str) -> EnqueueResult:
        """Attempt to enqueue one URL with dedup and discovery limit enforced."""

        canonical = canonicalize(url)
        with self._lock:
            if canonical in self._discovered:
                self._skipped_seen_count += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_SEEN, canonical)
            if self._limit_reached():
                self._skipped_budget_count += 1
                return EnqueueResult(EnqueueStatus.SKIPPED_BUDGET, canonical)
            self._accept(canonical)
        return EnqueueResult(EnqueueStatus.ENQUEUED, canonical)

    def push_many(self, urls: Iterable[str]) -> list[EnqueueResult]:
        """Attempt to enqueue multiple URLs, preserving input order."""

        return [self.push(url) for url in urls]

    def take_batch(self, max_items: int) -> list[str]:
        """Remove and return up to `max_items` URLs from the front of the queue."""

        if max_items <= 0:
            return []
        with self._lock:
            batch: list[str] = []
            while self._queue and len(batch) < max_items:
                batch.append(self._queue.popleft())
            self._dequeued_count += len(batch)
            return batch

    @property
    def limit_reached(self) -> bool:
        with self._lock:
            return self._limit_reached()

    def _limit_reached(self) -> bool:
        return self.discovery_limit is not None and len(self._discovered) >= self.discovery_limit

    def _accept(self, canonical: str) -> None:
        self._discovered.add(canonical)
        self._queue.append(canonical)
        self._enqueued_count += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)

    def empty(self) -> bool:
        return len(self) == 0

    def discovered_count(self) -> int:
        with self._lock:
            return len(self._discovered)

    def snapshot(self) -> dict[str, int]:
        """Return frontier counters for logs/stats reporting."""

        with self._lock:
            return {
                "queue_size": len(self._queue),
                "discovered": len(self._discovered),
                "enqueued": self._enqueued_count,
                "dequeued": self._dequeued_count,
                "skipped_seen": self._skipped_seen_count,
                "skipped_budget": self._skipped_budget_count,
            }


__all__ = [
    "EnqueueResult",
    "EnqueueStatus",
    "Frontier",
]
