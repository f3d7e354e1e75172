"""Thread-safe crawl counters with an atomic budget reservation."""

from __future__ import annotations

import threading

from .types import CrawlStats


class StatsTracker:
    """Running counters owned by one crawl job.

    Batch members run concurrently, so the budget check and the `attempted`
    increment happen together under one lock (`try_begin_attempt`). This keeps
    `attempted <= budget` at every observation point.
    """

    def __init__(self, budget: int | None = None) -> None:
        if budget is not None and budget <= 0:
            raise ValueError("budget must be > 0 when set")
        self.budget = budget

        self._lock = threading.Lock()
        self._attempted = 0
        self._successful = 0
        self._failed = 0
        self._skipped_robots = 0
        self._discovered = 0

    def try_begin_attempt(self) -> bool:
        """Reserve one unit of budget. Returns False when the budget is spent."""

        with self._lock:
            if self.budget is not None and self._attempted >= self.budget:
                return False
            self._attempted += 1
            return True

    def record_success(self) -> None:
        with self._lock:
            self._successful += 1

    def record_failure(self) -> None:
        """Release the reservation of a failed attempt."""

        with self._lock:
            self._attempted = max(0, self._attempted - 1)
            self._failed += 1

    def release_attempt(self) -> None:
        """Release the reservation of a canceled attempt."""

        with self._lock:
            self._attempted = max(0, self._attempted - 1)

    def record_robots_skip(self) -> None:
        with self._lock:
            self._skipped_robots += 1

    def set_discovered(self, count: int) -> None:
        with self._lock:
            self._discovered = count

    def remaining(self) -> int | None:
        """Budget left, or None when unbounded."""

        with self._lock:
            if self.budget is None:
                return None
            return max(0, self.budget - self._attempted)

    def exhausted(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    @property
    def attempted(self) -> int:
        with self._lock:
            return self._attempted

    @property
    def successful(self) -> int:
        with self._lock:
            return self._successful

    def snapshot(self) -> CrawlStats:
        with self._lock:
            return CrawlStats(
                attempted=self._attempted,
                successful=self._successful,
                failed=self._failed,
                skipped_robots=self._skipped_robots,
                discovered=self._discovered,
                budget=self.budget,
            )


__all__ = ["StatsTracker"]
