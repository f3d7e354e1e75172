import io
import json
import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import patch

from llmstxt import crawl
from llmstxt.crawler.config import CrawlConfig
from llmstxt.crawler.orchestrator import CrawlOrchestrator
from llmstxt.crawler.types import CrawlJob, FetchOutcome, PageFetchResult


ROOT = "https://example.com"


class LeafFetcher:
    def __init__(self, error=None):
        self.error = error

    def fetch_page(self, url, *, start_hostname=None, cancel=None):
        if self.error is not None:
            raise self.error
        return FetchOutcome.rendered(PageFetchResult(url=url, title="Home", text="Hello"))


class AllowAll:
    def is_allowed(self, url):
        return True

    def ensure_allowed(self, url):
        pass


class TestCliArguments(unittest.TestCase):
    def test_budget_flags(self):
        args = crawl.parse_args(["--url", ROOT, "--max_pages", "7"])
        self.assertEqual(crawl.build_request_payload(args)["pageBudget"], 7)

        args = crawl.parse_args(["--url", ROOT, "--unbounded"])
        self.assertEqual(crawl.build_request_payload(args)["pageBudget"], "unbounded")

        args = crawl.parse_args(["--url", ROOT, "--test_mode"])
        self.assertTrue(crawl.build_request_payload(args)["testMode"])

    def test_budget_flags_are_exclusive(self):
        with patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit):
                crawl.parse_args(["--url", ROOT, "--max_pages", "3", "--unbounded"])

    def test_build_config_applies_overrides(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "crawl.json"
            path.write_text(json.dumps({"concurrency": 4, "page_timeout_seconds": 10}), encoding="utf-8")
            args = crawl.parse_args(["--url", ROOT, "--config", str(path), "--concurrency", "2"])
            config = crawl.build_config(args)
        self.assertEqual(config.concurrency, 2)
        self.assertEqual(config.page_timeout_seconds, 10.0)


class TestRunJob(unittest.TestCase):
    def setUp(self):
        self.config = CrawlConfig()
        self.job = CrawlJob(start_url=ROOT, start_hostname="example.com", page_budget=1)

    def test_success_streams_json_lines(self):
        stream = io.StringIO()
        orchestrator = CrawlOrchestrator(self.config, fetcher=LeafFetcher(), robots=AllowAll())

        code = crawl.run_job(self.job, self.config, stream=stream, orchestrator=orchestrator)

        self.assertEqual(code, crawl.EXIT_OK)
        lines = [json.loads(line) for line in stream.getvalue().splitlines()]
        self.assertEqual(lines[-1]["type"], "complete")
        self.assertEqual(lines[-1]["crawledUrls"], [ROOT])

    def test_failure_exit_code(self):
        orchestrator = CrawlOrchestrator(self.config, fetcher=LeafFetcher(RuntimeError("boom")), robots=AllowAll())

        code = crawl.run_job(self.job, self.config, stream=io.StringIO(), orchestrator=orchestrator)

        self.assertEqual(code, crawl.EXIT_FAILED)

    def test_canceled_exit_code(self):
        cancel = threading.Event()
        cancel.set()
        orchestrator = CrawlOrchestrator(self.config, fetcher=LeafFetcher(), robots=AllowAll())

        code = crawl.run_job(self.job, self.config, stream=io.StringIO(), orchestrator=orchestrator, cancel=cancel)

        self.assertEqual(code, crawl.EXIT_CANCELED)


class TestMain(unittest.TestCase):
    def test_rejected_url_exit_code(self):
        stdout = io.StringIO()
        with patch("sys.stdout", stdout), patch.object(crawl, "setup_logging"):
            code = crawl.main(["--url", "https://localhost", "--no_probe"])
        self.assertEqual(code, crawl.EXIT_REJECTED)
        self.assertIn("Invalid URL format", json.loads(stdout.getvalue())["error"])

    def test_main_writes_output_dir(self):
        with tempfile.TemporaryDirectory() as tmp:
            orchestrator = CrawlOrchestrator(CrawlConfig(), fetcher=LeafFetcher(), robots=AllowAll())
            stdout = io.StringIO()
            with patch("sys.stdout", stdout), patch.object(crawl, "setup_logging"), patch.object(
                crawl, "CrawlOrchestrator", return_value=orchestrator
            ):
                code = crawl.main(["--url", ROOT, "--max_pages", "1", "--no_probe", "--output_dir", tmp])

            self.assertEqual(code, crawl.EXIT_OK)
            summary = json.loads((Path(tmp) / "crawl_summary.json").read_text(encoding="utf-8"))
            self.assertEqual(summary["crawledUrls"], [ROOT])
            self.assertTrue((Path(tmp) / "results.jsonl").exists())


if __name__ == "__main__":
    unittest.main()
