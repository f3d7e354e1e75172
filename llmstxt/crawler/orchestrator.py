"""Crawl orchestration: frontier batches, budget accounting, and event flow."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable

from .config import CrawlConfig
from .errors import PolicyError
from .events import CompleteUpdate, Emit, ErrorUpdate, ProgressUpdate, ResultUpdate
from .fetcher import PageFetcher
from .frontier import Frontier
from .robots import RobotsCache
from .stats import StatsTracker
from .types import CompleteStatus, CrawlJob, CrawlState, FetchStrategy, PageFetchResult, ProgressStatus
from .url import canonicalize


LOGGER = logging.getLogger(__name__)


class CrawlOrchestrator:
    """Drive one crawl job from seed to a terminal state.

    Lifecycle: idle -> running -> completed | canceled | failed. One instance
    runs one job.

    Each loop iteration takes up to `concurrency` URLs from the frontier,
    fetches them in parallel, waits for all of them, then expands the frontier
    from the new results. The loop stops when the frontier is empty, the
    budget is spent, or `cancel` is set.
    """

    def __init__(
        self,
        config: CrawlConfig | None = None,
        *,
        fetcher: PageFetcher | None = None,
        robots: RobotsCache | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or CrawlConfig()
        self.fetcher = fetcher or PageFetcher(self.config)
        self.robots = robots or RobotsCache(self.config)
        self._clock = clock

        self.state = CrawlState.IDLE
        self._results_lock = threading.Lock()
        self._results: list[PageFetchResult] = []

    def run(self, job: CrawlJob, cancel: threading.Event, emit: Emit) -> list[PageFetchResult]:
        """Crawl `job` and return successful page results in completion order."""

        self._transition(CrawlState.RUNNING)
        started = self._clock()

        stats = StatsTracker(job.page_budget)
        frontier = Frontier(discovery_limit=job.page_budget)

        try:
            seed = frontier.seed(job.start_url)
            stats.set_discovered(frontier.discovered_count())
            LOGGER.info(
                "Starting crawl of %s (hostname=%s, budget=%s)",
                seed.canonical_url,
                job.start_hostname,
                "unbounded" if job.unbounded else job.page_budget,
            )
            emit(
                ProgressUpdate(
                    status=ProgressStatus.LOADING,
                    stats=stats.snapshot(),
                    message="Starting crawl...",
                    current_url=seed.canonical_url,
                )
            )

            with ThreadPoolExecutor(
                max_workers=self.config.concurrency,
                thread_name_prefix="crawl-page",
            ) as pool:
                while not frontier.empty() and not stats.exhausted() and not cancel.is_set():
                    self._run_batch(pool, job, frontier, stats, cancel, emit)
        except Exception as exc:
            self._transition(CrawlState.FAILED)
            LOGGER.exception("Crawl of %s failed", job.start_url)
            snapshot = stats.snapshot()
            emit(ErrorUpdate(message=f"Crawl failed: {exc}", stats=snapshot, error_type=exc.__class__.__name__))
            emit(
                CompleteUpdate(
                    status=CompleteStatus.ERROR,
                    stats=snapshot,
                    message=f"Crawl failed: {exc}",
                    results=self.results,
                    duration=self._clock() - started,
                )
            )
            raise

        canceled = cancel.is_set()
        self._transition(CrawlState.CANCELED if canceled else CrawlState.COMPLETED)
        results = self.results
        LOGGER.info(
            "Crawl of %s %s: attempted=%d successful=%d discovered=%d",
            job.start_url,
            "canceled" if canceled else "completed",
            stats.attempted,
            stats.successful,
            frontier.discovered_count(),
        )
        emit(
            CompleteUpdate(
                status=CompleteStatus.CANCELED if canceled else CompleteStatus.SUCCESS,
                stats=stats.snapshot(),
                message="Crawl was canceled" if canceled else f"Completed crawl with {len(results)} pages",
                results=results,
                duration=self._clock() - started,
            )
        )
        return results

    @property
    def results(self) -> list[PageFetchResult]:
        with self._results_lock:
            return list(self._results)

    def _transition(self, new_state: CrawlState) -> None:
        if self.state.terminal:
            raise RuntimeError(f"Crawl already finished with state {self.state.value}")
        if new_state == CrawlState.RUNNING and self.state != CrawlState.IDLE:
            raise RuntimeError("CrawlOrchestrator instances run a single job")
        self.state = new_state

    def _run_batch(
        self,
        pool: ThreadPoolExecutor,
        job: CrawlJob,
        frontier: Frontier,
        stats: StatsTracker,
        cancel: threading.Event,
        emit: Emit,
    ) -> None:
        remaining = stats.remaining()
        size = min(self.config.concurrency, len(frontier))
        if remaining is not None:
            size = min(size, remaining)
        batch = frontier.take_batch(size)
        if not batch:
            return

        LOGGER.info(
            "Processing batch of %d URLs. Queue size: %d, attempted: %d/%s",
            len(batch),
            len(frontier),
            stats.attempted,
            "unbounded" if job.unbounded else job.page_budget,
        )
        emit(
            ProgressUpdate(
                status=ProgressStatus.LOADING,
                stats=stats.snapshot(),
                message=f"Crawling batch of {len(batch)} pages...",
                current_url=batch[0],
            )
        )

        futures = [pool.submit(self._crawl_one, url, job, stats, cancel, emit) for url in batch]
        wait(futures)
        batch_results = [result for result in (future.result() for future in futures) if result is not None]

        if not cancel.is_set() and not stats.exhausted():
            self._expand(frontier, batch_results)
        stats.set_discovered(frontier.discovered_count())

        snapshot = stats.snapshot()
        emit(
            ProgressUpdate(
                status=ProgressStatus.EXTRACTING,
                stats=snapshot,
                message=f"Processed {snapshot.attempted} URLs, found {len(self.results)} valid pages",
                links_found=snapshot.discovered,
            )
        )

    def _crawl_one(
        self,
        url: str,
        job: CrawlJob,
        stats: StatsTracker,
        cancel: threading.Event,
        emit: Emit,
    ) -> PageFetchResult | None:
        if cancel.is_set():
            return None

        try:
            self.robots.ensure_allowed(url)
        except PolicyError:
            LOGGER.info("Skipping %s - disallowed by robots.txt", url)
            stats.record_robots_skip()
            return None

        if not stats.try_begin_attempt():
            LOGGER.info("Page budget reached, skipping %s", url)
            return None

        outcome = self.fetcher.fetch_page(url, start_hostname=job.start_hostname, cancel=cancel)

        if outcome.canceled or cancel.is_set():
            LOGGER.info("Crawl canceled while fetching %s", url)
            stats.release_attempt()
            return None

        if outcome.result is None:
            stats.record_failure()
            emit(
                ErrorUpdate(
                    message=f"Error crawling {url}: {outcome.reason or 'unknown error'}",
                    stats=stats.snapshot(),
                    url=url,
                    error_type=None if outcome.error is None else outcome.error.__class__.__name__,
                )
            )
            return None

        result = outcome.result
        stats.record_success()
        with self._results_lock:
            self._results.append(result)
        LOGGER.info("Crawled %s via %s fetch", url, result.strategy.value)
        snapshot = stats.snapshot()
        emit(
            ProgressUpdate(
                status=ProgressStatus.SUCCESS,
                stats=snapshot,
                message=(
                    "Successfully crawled page (fallback method)"
                    if result.strategy == FetchStrategy.FALLBACK
                    else "Successfully crawled page"
                ),
                current_url=url,
            )
        )
        emit(ResultUpdate(result=result, stats=snapshot))
        return result

    def _expand(self, frontier: Frontier, batch_results: list[PageFetchResult]) -> None:
        for result in batch_results:
            if frontier.limit_reached:
                LOGGER.info("Discovered %d URLs, the page budget. Not adding more.", frontier.discovered_count())
                return
            for link in result.links:
                if frontier.limit_reached:
                    break
                canonical = canonicalize(link)
                if frontier.is_discovered(canonical):
                    continue
                if not self.robots.is_allowed(canonical):
                    LOGGER.info("Not adding %s to queue - disallowed by robots.txt", canonical)
                    continue
                frontier.push(canonical)


def crawl_site(
    job: CrawlJob,
    cancel: threading.Event,
    emit: Emit,
    *,
    config: CrawlConfig | None = None,
    fetcher: PageFetcher | None = None,
    robots: RobotsCache | None = None,
) -> list[PageFetchResult]:
    """Run one job with a fresh orchestrator."""

    return CrawlOrchestrator(config, fetcher=fetcher, robots=robots).run(job, cancel, emit)


__all__ = ["CrawlOrchestrator", "crawl_site"]
