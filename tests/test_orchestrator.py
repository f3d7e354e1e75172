import threading
import unittest

from llmstxt.crawler.config import CrawlConfig
from llmstxt.crawler.errors import CancellationError, DomainParkingError, NetworkError, PolicyError
from llmstxt.crawler.events import CompleteUpdate, ErrorUpdate, ProgressUpdate, ResultUpdate
from llmstxt.crawler.orchestrator import CrawlOrchestrator, crawl_site
from llmstxt.crawler.types import CrawlJob, CrawlState, FetchOutcome, FetchStrategy, PageFetchResult


ROOT = "https://example.com"


def page(url, links=(), strategy=FetchStrategy.RENDERED):
    result = PageFetchResult(url=url, title=f"Title {url}", text=f"Text {url}", links=list(links), strategy=strategy)
    if strategy == FetchStrategy.FALLBACK:
        return FetchOutcome.fallback(result)
    return FetchOutcome.rendered(result)


class FakeFetcher:
    """Serves canned outcomes by URL; unknown URLs are leaf pages."""

    def __init__(self, site=None, on_fetch=None):
        self.site = dict(site or {})
        self.on_fetch = on_fetch
        self.calls = []
        self._lock = threading.Lock()

    def fetch_page(self, url, *, start_hostname=None, cancel=None):
        with self._lock:
            self.calls.append(url)
        if self.on_fetch is not None:
            outcome = self.on_fetch(url, cancel)
            if outcome is not None:
                return outcome
        return self.site.get(url) or page(url)


class FakeRobots:
    def __init__(self, disallowed=()):
        self.disallowed = set(disallowed)

    def is_allowed(self, url):
        return url not in self.disallowed

    def ensure_allowed(self, url):
        if not self.is_allowed(url):
            raise PolicyError(url=url)


class EventLog:
    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def __call__(self, event):
        with self._lock:
            self.events.append(event)

    def of(self, kind):
        return [event for event in self.events if isinstance(event, kind)]

    @property
    def complete(self):
        completes = self.of(CompleteUpdate)
        assert len(completes) == 1, completes
        return completes[0]


class TestCrawlOrchestrator(unittest.TestCase):
    def setUp(self):
        self.config = CrawlConfig(concurrency=3)
        self.cancel = threading.Event()
        self.log = EventLog()

    def run_job(self, fetcher, robots=None, budget=None):
        job = CrawlJob(start_url=ROOT, start_hostname="example.com", page_budget=budget)
        orchestrator = CrawlOrchestrator(self.config, fetcher=fetcher, robots=robots or FakeRobots())
        results = orchestrator.run(job, self.cancel, self.log)
        return orchestrator, results

    def test_budget_of_one_fetches_only_start_page(self):
        fetcher = FakeFetcher({ROOT: page(ROOT, [f"{ROOT}/a", f"{ROOT}/b"])})

        orchestrator, results = self.run_job(fetcher, budget=1)

        self.assertEqual(fetcher.calls, [ROOT])
        self.assertEqual([result.url for result in results], [ROOT])
        complete = self.log.complete.to_json()
        self.assertEqual(complete["status"], "success")
        self.assertEqual(complete["attempted"], 1)
        self.assertEqual(complete["crawledUrls"], [ROOT])
        self.assertEqual(complete["progress"], 100)
        self.assertEqual(orchestrator.state, CrawlState.COMPLETED)

    def test_equivalent_links_are_fetched_once(self):
        fetcher = FakeFetcher(
            {
                ROOT: page(
                    ROOT,
                    [
                        f"{ROOT}/a?utm_source=newsletter",
                        f"{ROOT}/a",
                        f"{ROOT}/a/",
                        f"{ROOT}/#/a",
                    ],
                )
            }
        )

        _, results = self.run_job(fetcher)

        self.assertEqual(sorted(fetcher.calls), [ROOT, f"{ROOT}/a"])
        self.assertEqual(len(results), 2)

    def test_parked_page_reports_error_and_is_excluded(self):
        parked = FetchOutcome.failed(f"{ROOT}/a", DomainParkingError(url=f"{ROOT}/a"))
        fetcher = FakeFetcher({ROOT: page(ROOT, [f"{ROOT}/a", f"{ROOT}/b"]), f"{ROOT}/a": parked})

        _, results = self.run_job(fetcher)

        errors = self.log.of(ErrorUpdate)
        self.assertEqual(len(errors), 1)
        self.assertEqual(errors[0].url, f"{ROOT}/a")
        self.assertEqual(errors[0].error_type, "DomainParkingError")
        self.assertIn("Domain parking", errors[0].message)
        complete = self.log.complete
        self.assertEqual(complete.crawled_urls.count(f"{ROOT}/a"), 0)
        self.assertEqual(sorted(complete.crawled_urls), [ROOT, f"{ROOT}/b"])
        self.assertEqual(complete.stats.failed, 1)
        self.assertEqual(complete.stats.attempted, 2)
        self.assertEqual(len(results), 2)

    def test_failed_page_is_not_counted_as_attempted(self):
        failed = FetchOutcome.failed(f"{ROOT}/a", NetworkError("boom", url=f"{ROOT}/a"))
        fetcher = FakeFetcher(
            {
                ROOT: page(ROOT, [f"{ROOT}/a", f"{ROOT}/b"]),
                f"{ROOT}/a": failed,
                f"{ROOT}/b": page(f"{ROOT}/b", [f"{ROOT}/c"]),
            }
        )

        _, results = self.run_job(fetcher, budget=3)

        self.assertEqual(sorted(result.url for result in results), [ROOT, f"{ROOT}/b"])
        stats = self.log.complete.stats
        self.assertEqual(stats.attempted, 2)
        self.assertEqual(stats.failed, 1)

    def test_robots_disallowed_url_is_never_fetched(self):
        fetcher = FakeFetcher({ROOT: page(ROOT, [f"{ROOT}/private", f"{ROOT}/public"])})

        _, results = self.run_job(fetcher, robots=FakeRobots({f"{ROOT}/private"}))

        self.assertNotIn(f"{ROOT}/private", fetcher.calls)
        self.assertEqual(sorted(result.url for result in results), [ROOT, f"{ROOT}/public"])
        self.assertEqual(self.log.complete.stats.attempted, 2)

    def test_disallowed_start_url_completes_empty(self):
        fetcher = FakeFetcher()

        _, results = self.run_job(fetcher, robots=FakeRobots({ROOT}))

        self.assertEqual(fetcher.calls, [])
        self.assertEqual(results, [])
        complete = self.log.complete
        self.assertEqual(complete.status.value, "success")
        self.assertEqual(complete.stats.skipped_robots, 1)
        self.assertEqual(complete.stats.attempted, 0)

    def test_cancel_mid_batch(self):
        def cancel_on_a(url, cancel):
            if url == f"{ROOT}/a":
                cancel.set()
                return FetchOutcome.failed(url, CancellationError("Crawl canceled", url=url), canceled=True)
            return None

        links = [f"{ROOT}/a", f"{ROOT}/b", f"{ROOT}/c", f"{ROOT}/d", f"{ROOT}/e"]
        site = {ROOT: page(ROOT, links)}
        for link in links:
            site[link] = page(link, [f"{link}/child"])
        fetcher = FakeFetcher(site, on_fetch=cancel_on_a)

        orchestrator, results = self.run_job(fetcher)

        self.assertEqual(orchestrator.state, CrawlState.CANCELED)
        complete = self.log.complete
        self.assertEqual(complete.status.value, "canceled")
        self.assertNotIn(f"{ROOT}/a", complete.crawled_urls)
        self.assertLessEqual(len(fetcher.calls), 4)
        self.assertFalse(any(url.endswith("/child") for url in fetcher.calls))
        self.assertIs(self.log.events[-1], complete)

    def test_counters_stay_within_budget_at_every_event(self):
        links = [f"{ROOT}/p{i}" for i in range(10)]
        site = {ROOT: page(ROOT, links)}
        for link in links:
            site[link] = page(link, [f"{link}/deeper"])
        fetcher = FakeFetcher(site)

        _, results = self.run_job(fetcher, budget=3)

        self.assertEqual(len(fetcher.calls), 3)
        self.assertEqual(len(results), 3)
        for event in self.log.events:
            payload = event.to_json()
            self.assertLessEqual(payload["attempted"], 3)
            self.assertLessEqual(payload["successful"], payload["attempted"])
            if "progress" in payload:
                self.assertLessEqual(payload["progress"], 100)

    def test_fallback_strategy_reported(self):
        fetcher = FakeFetcher({ROOT: page(ROOT, strategy=FetchStrategy.FALLBACK)})

        self.run_job(fetcher)

        result_events = self.log.of(ResultUpdate)
        self.assertEqual(len(result_events), 1)
        self.assertEqual(result_events[0].to_json()["result"]["strategy"], "fallback")

    def test_success_progress_precedes_each_result(self):
        self.run_job(FakeFetcher())

        statuses = [event.status.value for event in self.log.of(ProgressUpdate)]
        self.assertEqual(statuses, ["loading", "loading", "success", "extracting"])
        success = [event for event in self.log.of(ProgressUpdate) if event.status.value == "success"][0]
        self.assertEqual(success.message, "Successfully crawled page")
        self.assertEqual(success.current_url, ROOT)
        kinds = [type(event) for event in self.log.events]
        self.assertEqual(kinds.index(ResultUpdate), self.log.events.index(success) + 1)

    def test_fallback_success_progress_message(self):
        self.run_job(FakeFetcher({ROOT: page(ROOT, strategy=FetchStrategy.FALLBACK)}))

        success = [event for event in self.log.of(ProgressUpdate) if event.status.value == "success"]
        self.assertEqual([event.message for event in success], ["Successfully crawled page (fallback method)"])

    def test_batch_progress_messages(self):
        fetcher = FakeFetcher({ROOT: page(ROOT, [f"{ROOT}/a"])})

        self.run_job(fetcher)

        progress = self.log.of(ProgressUpdate)
        self.assertEqual(progress[0].message, "Starting crawl...")
        loading = [event for event in progress if event.message.startswith("Crawling batch")]
        self.assertEqual(loading[0].message, "Crawling batch of 1 pages...")
        self.assertEqual(loading[0].current_url, ROOT)
        extracting = [event for event in progress if event.status.value == "extracting"]
        self.assertEqual(extracting[-1].message, "Processed 2 URLs, found 2 valid pages")
        self.assertEqual(extracting[-1].links_found, 2)

    def test_unexpected_error_fails_job(self):
        def explode(url, cancel):
            raise RuntimeError("fetcher crashed")

        orchestrator = CrawlOrchestrator(self.config, fetcher=FakeFetcher(on_fetch=explode), robots=FakeRobots())
        job = CrawlJob(start_url=ROOT, start_hostname="example.com")

        with self.assertRaises(RuntimeError):
            orchestrator.run(job, self.cancel, self.log)

        self.assertEqual(orchestrator.state, CrawlState.FAILED)
        self.assertEqual(len(self.log.of(ErrorUpdate)), 1)
        self.assertEqual(self.log.complete.status.value, "error")

    def test_orchestrator_runs_one_job(self):
        orchestrator, _ = self.run_job(FakeFetcher())
        job = CrawlJob(start_url=ROOT, start_hostname="example.com")
        with self.assertRaises(RuntimeError):
            orchestrator.run(job, threading.Event(), self.log)

    def test_crawl_site_helper(self):
        job = CrawlJob(start_url=ROOT, start_hostname="example.com", page_budget=2)
        results = crawl_site(
            job,
            self.cancel,
            self.log,
            config=self.config,
            fetcher=FakeFetcher({ROOT: page(ROOT, [f"{ROOT}/x"])}),
            robots=FakeRobots(),
        )
        self.assertEqual(sorted(result.url for result in results), [ROOT, f"{ROOT}/x"])


if __name__ == "__main__":
    unittest.main()
