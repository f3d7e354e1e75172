import json
import threading
import unittest
from unittest.mock import patch

import requests

from llmstxt.crawler.config import CrawlConfig
from llmstxt.crawler.errors import CancellationError
from llmstxt.crawler.types import FetchOutcome, PageFetchResult
from llmstxt.server import create_app


ROOT = "https://example.com"


class FakeFetcher:
    def __init__(self, links=None, block=False):
        self.links = dict(links or {})
        self.block = block
        self.calls = []
        self.entered = threading.Event()
        self.cancel_seen = threading.Event()

    def fetch_page(self, url, *, start_hostname=None, cancel=None):
        self.calls.append(url)
        if self.block:
            self.entered.set()
            if cancel.wait(5):
                self.cancel_seen.set()
            return FetchOutcome.failed(url, CancellationError("Crawl canceled", url=url), canceled=True)
        return FetchOutcome.rendered(
            PageFetchResult(url=url, title="Page", text=f"Text of {url}", links=self.links.get(url, []))
        )


class AllowAll:
    def is_allowed(self, url):
        return True

    def ensure_allowed(self, url):
        pass


def sse_events(body):
    events = []
    for chunk in body.split("\n\n"):
        if chunk.startswith("data: "):
            events.append(json.loads(chunk[len("data: "):]))
    return events


class TestCrawlServer(unittest.TestCase):
    def make_client(self, fetcher=None, probe=False):
        self.fetcher = fetcher or FakeFetcher({ROOT: [f"{ROOT}/a", f"{ROOT}/b"]})
        app = create_app(CrawlConfig(concurrency=2), robots=AllowAll(), fetcher=self.fetcher, probe=probe)
        app.testing = True
        return app.test_client()

    def test_health(self):
        response = self.make_client().get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json(), {"status": "ok"})

    def test_invalid_url_rejected_before_streaming(self):
        response = self.make_client().post("/api/crawl", json={"url": "not-a-url"})
        self.assertEqual(response.status_code, 400)
        payload = response.get_json()
        self.assertIn("Invalid URL format", payload["error"])
        self.assertEqual(self.fetcher.calls, [])

    def test_unreachable_url_rejected(self):
        client = self.make_client(probe=True)
        with patch("llmstxt.crawler.request.requests.head", side_effect=requests.ConnectionError("refused")):
            response = client.post("/api/crawl", json={"url": ROOT, "pageBudget": 2})
        self.assertEqual(response.status_code, 400)
        self.assertIn("Failed to reach the URL", response.get_json()["error"])

    def test_post_streams_events_until_complete(self):
        response = self.make_client().post("/api/crawl", json={"url": ROOT, "pageBudget": 3})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.mimetype, "text/event-stream")
        self.assertEqual(response.headers["Cache-Control"], "no-cache")

        events = sse_events(response.get_data(as_text=True))
        self.assertEqual(events[0]["type"], "progress")
        self.assertEqual(events[-1]["type"], "complete")
        self.assertEqual(events[-1]["status"], "success")
        self.assertEqual(sorted(events[-1]["crawledUrls"]), [ROOT, f"{ROOT}/a", f"{ROOT}/b"])
        results = [event for event in events if event["type"] == "result"]
        self.assertEqual(len(results), 3)

    def test_legacy_get_with_test_mode(self):
        links = {ROOT: [f"{ROOT}/p{i}" for i in range(10)]}
        response = self.make_client(FakeFetcher(links)).get(f"/api/crawl?url={ROOT}&testMode=true")

        events = sse_events(response.get_data(as_text=True))
        self.assertEqual(events[-1]["type"], "complete")
        self.assertEqual(len(events[-1]["crawledUrls"]), 5)

    def test_client_disconnect_cancels_crawl(self):
        fetcher = FakeFetcher(block=True)
        client = self.make_client(fetcher)

        response = client.post("/api/crawl", json={"url": ROOT}, buffered=False)
        stream = iter(response.response)
        first = next(stream)
        if isinstance(first, bytes):
            first = first.decode("utf-8")
        self.assertIn('"type": "progress"', first)
        # disconnect only once a page fetch is in flight
        self.assertTrue(fetcher.entered.wait(5))
        response.close()

        self.assertTrue(fetcher.cancel_seen.wait(5))


if __name__ == "__main__":
    unittest.main()
