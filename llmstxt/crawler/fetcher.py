"""Two-tier page fetching: selenium render first, requests + BeautifulSoup fallback."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator

import requests
from bs4 import BeautifulSoup
from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.common.by import By
from selenium.webdriver.firefox.options import Options as FirefoxOptions

from .config import CrawlConfig
from .constants import AD_IFRAME_SELECTOR
from .errors import (
    CancellationError,
    ContentError,
    DomainParkingError,
    FetchError,
    NetworkError,
)
from .parking import detect_parking
from .types import FetchOutcome, FetchStrategy, PageFetchResult
from .url import extract_links_from_soup, filter_outbound_links, host_from_url


LOGGER = logging.getLogger(__name__)

_BODY_TEXT_SCRIPT = "return document.body ? document.body.innerText : '';"
_LINKS_SCRIPT = (
    "return Array.from(document.querySelectorAll('a'))"
    ".map(a => a.href)"
    ".filter(href => href && href.startsWith('http'));"
)
_READY_STATE_SCRIPT = "return document.readyState;"
_RESOURCE_COUNT_SCRIPT = "return performance.getEntriesByType('resource').length;"

_NON_VISIBLE_TAGS = ("script", "style", "noscript", "template")

DriverFactory = Callable[[], Any]


class PageFetcher:
    """Fetch one page's title, visible text, and same-host links.

    `fetch_page` never raises for per-page failures; it returns a tagged
    `FetchOutcome`. `fetch` is the raising variant.

    Each rendered fetch launches its own browser and quits it on every exit
    path. The fallback uses one `requests.Session` per worker thread.
    """

    def __init__(
        self,
        config: CrawlConfig | None = None,
        *,
        driver_factory: DriverFactory | None = None,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.config = config or CrawlConfig()
        self._driver_factory = driver_factory or self._create_selenium_driver
        self._session_factory = session_factory
        self._thread_local = threading.local()

    def fetch(
        self,
        url: str,
        *,
        start_hostname: str | None = None,
        cancel: threading.Event | None = None,
    ) -> PageFetchResult:
        """Fetch one URL or raise the `FetchError` explaining why not."""

        outcome = self.fetch_page(url, start_hostname=start_hostname, cancel=cancel)
        if outcome.result is not None:
            return outcome.result
        raise outcome.error or FetchError("Unknown fetch failure", url=url)

    def fetch_page(
        self,
        url: str,
        *,
        start_hostname: str | None = None,
        cancel: threading.Event | None = None,
    ) -> FetchOutcome:
        hostname = (start_hostname or host_from_url(url)).lower()

        if cancel is not None and cancel.is_set():
            return FetchOutcome.failed(url, CancellationError("Crawl canceled", url=url), canceled=True)

        try:
            return FetchOutcome.rendered(self._fetch_rendered(url, hostname, cancel))
        except DomainParkingError as exc:
            LOGGER.info("Detected domain parking page for %s with rendered fetch: %s", url, "; ".join(exc.reasons))
            return FetchOutcome.failed(url, exc)
        except CancellationError as exc:
            return FetchOutcome.failed(url, exc, canceled=True)
        except Exception as exc:
            LOGGER.info("Rendered fetch failed for %s, trying fallback: %s", url, exc)

        try:
            return FetchOutcome.fallback(self._fetch_static(url, hostname, cancel))
        except CancellationError as exc:
            return FetchOutcome.failed(url, exc, canceled=True)
        except DomainParkingError as exc:
            LOGGER.info("Detected domain parking page for %s with fallback fetch: %s", url, "; ".join(exc.reasons))
            return FetchOutcome.failed(url, exc)
        except FetchError as exc:
            LOGGER.info("Fallback fetch failed for %s: %s", url, exc)
            return FetchOutcome.failed(url, exc)

    # Rendered strategy

    @contextmanager
    def _browser(self, url: str) -> Iterator[Any]:
        try:
            driver = self._driver_factory()
        except Exception as exc:
            raise NetworkError(f"Failed to launch browser: {exc}", url=url) from exc

        LOGGER.debug("Launched browser for %s", url)
        try:
            yield driver
        finally:
            try:
                driver.quit()
                LOGGER.debug("Closed browser for %s", url)
            except Exception as exc:
                LOGGER.warning("Error closing browser for %s: %s", url, exc)

    def _fetch_rendered(
        self,
        url: str,
        start_hostname: str,
        cancel: threading.Event | None,
    ) -> PageFetchResult:
        with self._browser(url) as driver:
            try:
                driver.set_page_load_timeout(max(1, int(self.config.page_timeout_seconds)))
                driver.set_window_size(*self.config.viewport)
                driver.get(url)
            except TimeoutException as exc:
                raise NetworkError(f"Navigation timed out after {self.config.page_timeout_seconds}s", url=url) from exc
            except WebDriverException as exc:
                raise NetworkError(f"Navigation failed: {exc.msg or exc}", url=url) from exc

            self._check_cancel(cancel, url)
            self._wait_for_network_idle(driver, url, cancel)

            final_url = driver.current_url or url
            title = (driver.title or "").strip()
            text = (driver.execute_script(_BODY_TEXT_SCRIPT) or "").strip()
            raw_links = [str(link) for link in (driver.execute_script(_LINKS_SCRIPT) or [])]
            has_ad_iframes = bool(driver.find_elements(By.CSS_SELECTOR, AD_IFRAME_SELECTOR))

            LOGGER.debug(
                "Rendered %s: final_url=%s title=%r text_chars=%d links=%d",
                url,
                final_url,
                title,
                len(text),
                len(raw_links),
            )

            self._raise_if_parked(
                url,
                title=title,
                text=text,
                raw_links=raw_links,
                final_url=final_url,
                start_hostname=start_hostname,
                has_ad_iframes=has_ad_iframes,
            )
            return self._build_result(
                url,
                title=title,
                text=text,
                raw_links=raw_links,
                final_url=final_url,
                start_hostname=start_hostname,
                strategy=FetchStrategy.RENDERED,
            )

    def _wait_for_network_idle(self, driver: Any, url: str, cancel: threading.Event | None) -> None:
        """Wait until the document is complete and no new resources load for a quiet window."""

        quiet_window = self.config.network_idle_seconds
        if quiet_window <= 0:
            return

        deadline = time.monotonic() + self.config.page_timeout_seconds
        last_count = -1
        stable_since = time.monotonic()

        while True:
            self._check_cancel(cancel, url)
            ready_state = driver.execute_script(_READY_STATE_SCRIPT)
            resource_count = driver.execute_script(_RESOURCE_COUNT_SCRIPT)
            now = time.monotonic()

            if ready_state != "complete" or resource_count != last_count:
                last_count = resource_count
                stable_since = now
            elif now - stable_since >= quiet_window:
                return

            if now >= deadline:
                raise NetworkError(
                    f"Network did not settle within {self.config.page_timeout_seconds}s",
                    url=url,
                )
            time.sleep(min(0.1, quiet_window))

    def _create_selenium_driver(self) -> Any:
        errors: list[str] = []
        width, height = self.config.viewport

        # Try Chrome first.
        try:
            chrome_options = ChromeOptions()
            if self.config.headless:
                chrome_options.add_argument("--headless=new")
            chrome_options.add_argument("--disable-gpu")
            chrome_options.add_argument("--no-sandbox")
            chrome_options.add_argument("--disable-setuid-sandbox")
            chrome_options.add_argument("--disable-dev-shm-usage")
            chrome_options.add_argument(f"--window-size={width},{height}")
            chrome_options.add_argument(f"--user-agent={self.config.browser_user_agent}")
            return webdriver.Chrome(options=chrome_options)
        except Exception as exc:
            errors.append(f"Chrome: {exc}")

        # Fallback to Firefox.
        try:
            firefox_options = FirefoxOptions()
            if self.config.headless:
                firefox_options.add_argument("-headless")
            firefox_options.set_preference("general.useragent.override", self.config.browser_user_agent)
            return webdriver.Firefox(options=firefox_options)
        except Exception as exc:
            errors.append(f"Firefox: {exc}")

        raise RuntimeError("; ".join(errors) or "No usable Selenium driver found")

    # Fallback strategy

    def _fetch_static(
        self,
        url: str,
        start_hostname: str,
        cancel: threading.Event | None,
    ) -> PageFetchResult:
        self._check_cancel(cancel, url)

        try:
            response = self._thread_local_session().get(
                url,
                headers={"User-Agent": self.config.browser_user_agent},
                timeout=self.config.http_timeout_seconds,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            raise NetworkError(f"{exc.__class__.__name__}: {exc}", url=url) from exc

        self._check_cancel(cancel, url)

        if not response.ok:
            raise NetworkError(f"Fetch failed with status {response.status_code}", url=url)

        final_url = response.url or url
        soup = BeautifulSoup(response.text or "", "lxml")
        title = soup.title.get_text(" ", strip=True) if soup.title else ""
        raw_links = extract_links_from_soup(soup, base_url=final_url)

        for tag in soup.find_all(_NON_VISIBLE_TAGS):
            tag.decompose()
        root = soup.body or soup
        text = root.get_text(" ", strip=True)

        self._raise_if_parked(
            url,
            title=title,
            text=text,
            raw_links=raw_links,
            final_url=final_url,
            start_hostname=start_hostname,
            has_ad_iframes=False,
        )
        return self._build_result(
            url,
            title=title,
            text=text,
            raw_links=raw_links,
            final_url=final_url,
            start_hostname=start_hostname,
            strategy=FetchStrategy.FALLBACK,
        )

    def _thread_local_session(self) -> requests.Session:
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = self._session_factory()
            self._thread_local.session = session
        return session

    # Shared

    def _raise_if_parked(
        self,
        url: str,
        *,
        title: str,
        text: str,
        raw_links: list[str],
        final_url: str,
        start_hostname: str,
        has_ad_iframes: bool,
    ) -> None:
        signals = detect_parking(
            title,
            text,
            raw_links,
            host_from_url(final_url),
            start_hostname,
            has_ad_iframes=has_ad_iframes,
            ad_link_threshold=self.config.ad_link_threshold,
        )
        if signals.parked:
            raise DomainParkingError(url=url, reasons=signals.reasons)

    @staticmethod
    def _build_result(
        url: str,
        *,
        title: str,
        text: str,
        raw_links: list[str],
        final_url: str,
        start_hostname: str,
        strategy: FetchStrategy,
    ) -> PageFetchResult:
        if not title and not text:
            raise ContentError("No valid content found on page", url=url)

        return PageFetchResult(
            url=url,
            title=title,
            text=text,
            links=filter_outbound_links(raw_links, start_hostname),
            strategy=strategy,
            final_url=final_url,
        )

    @staticmethod
    def _check_cancel(cancel: threading.Event | None, url: str) -> None:
        if cancel is not None and cancel.is_set():
            raise CancellationError("Crawl canceled", url=url)


__all__ = ["PageFetcher"]
