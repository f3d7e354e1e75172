"""Crawl start request parsing, URL validation, and reachability probe."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import urlsplit

import requests

from .config import CrawlConfig
from .constants import DEFAULT_TEST_MODE_MAX_PAGES, UNBOUNDED_BUDGET
from .errors import InvalidStartRequest
from .types import CrawlJob
from .url import canonicalize


LOGGER = logging.getLogger(__name__)

_NUMERIC_LABEL_RE = re.compile(r"^\d+$")

INVALID_URL_MESSAGE = (
    "Invalid URL format. Please provide a complete URL including protocol "
    "(http:// or https://) and a valid domain name."
)


@dataclass(frozen=True, slots=True)
class CrawlRequest:
    """Validated crawl start request. `page_budget=None` means unbounded."""

    url: str
    hostname: str
    page_budget: int | None

    def to_job(self) -> CrawlJob:
        return CrawlJob(
            start_url=canonicalize(self.url),
            start_hostname=self.hostname,
            page_budget=self.page_budget,
        )


def validate_start_url(url: Any) -> str:
    """Return the lowercase hostname of a valid start URL or raise `InvalidStartRequest`."""

    if not url or not isinstance(url, str) or url.strip() == "unknown":
        raise InvalidStartRequest("Missing or invalid URL parameter. URL must be a valid web address.")

    try:
        parsed = urlsplit(url.strip())
        hostname = (parsed.hostname or "").lower()
    except ValueError as exc:
        raise InvalidStartRequest(INVALID_URL_MESSAGE, str(exc)) from exc

    if parsed.scheme.lower() not in {"http", "https"}:
        raise InvalidStartRequest(INVALID_URL_MESSAGE, f"Unsupported scheme: {parsed.scheme or '(none)'}")
    if not hostname or hostname == "unknown":
        raise InvalidStartRequest(INVALID_URL_MESSAGE, "Invalid hostname in URL")

    labels = hostname.split(".")
    tld = labels[-1]
    if len(labels) < 2 or _NUMERIC_LABEL_RE.match(tld):
        raise InvalidStartRequest(INVALID_URL_MESSAGE, "Invalid domain structure")
    if len(tld) < 2 or len(tld) > 12:
        raise InvalidStartRequest(INVALID_URL_MESSAGE, f"Suspicious TLD: .{tld}")
    if hostname.startswith("-"):
        raise InvalidStartRequest(INVALID_URL_MESSAGE, "Domain cannot start with a hyphen")

    return hostname


def parse_page_budget(
    value: Any,
    *,
    test_mode: bool = False,
    test_mode_max_pages: int = DEFAULT_TEST_MODE_MAX_PAGES,
) -> int | None:
    """Parse `pageBudget`: "unbounded", a positive integer, or absent."""

    if test_mode:
        return test_mode_max_pages
    if value is None or (isinstance(value, str) and value.strip().lower() == UNBOUNDED_BUDGET):
        return None
    if isinstance(value, bool):
        raise InvalidStartRequest("Invalid page budget", f"Expected integer or '{UNBOUNDED_BUDGET}', got {value!r}")
    try:
        budget = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidStartRequest(
            "Invalid page budget",
            f"Expected integer or '{UNBOUNDED_BUDGET}', got {value!r}",
        ) from exc
    if budget <= 0:
        raise InvalidStartRequest("Invalid page budget", "Page budget must be > 0")
    return budget


def _as_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def parse_crawl_request(
    payload: Mapping[str, Any],
    config: CrawlConfig | None = None,
) -> CrawlRequest:
    """Validate the structure of a start request. Does not touch the network."""

    cfg = config or CrawlConfig()
    url = payload.get("url")
    hostname = validate_start_url(url)
    budget = parse_page_budget(
        payload.get("pageBudget"),
        test_mode=_as_flag(payload.get("testMode", False)),
        test_mode_max_pages=cfg.test_mode_max_pages,
    )
    LOGGER.info("Valid crawl request: url=%s hostname=%s budget=%s", url, hostname, budget)
    return CrawlRequest(url=str(url).strip(), hostname=hostname, page_budget=budget)


def probe_reachability(
    url: str,
    config: CrawlConfig | None = None,
    *,
    session: requests.Session | None = None,
) -> None:
    """HEAD the start URL; raise `InvalidStartRequest` unless it answers 2xx."""

    cfg = config or CrawlConfig()
    http = session if session is not None else requests
    try:
        response = http.head(
            url,
            headers={"User-Agent": cfg.robots_fetch_user_agent},
            timeout=cfg.probe_timeout_seconds,
            allow_redirects=True,
        )
    except requests.RequestException as exc:
        LOGGER.warning("Error checking URL %s: %s", url, exc)
        raise InvalidStartRequest(f"Failed to reach the URL: {url}", str(exc)) from exc

    if not 200 <= response.status_code < 300:
        LOGGER.info("Failed to reach URL %s, status %s", url, response.status_code)
        raise InvalidStartRequest(
            f"Failed to reach the URL: {url}",
            f"Server responded with status: {response.status_code}",
        )


def prepare_job(
    payload: Mapping[str, Any],
    config: CrawlConfig | None = None,
    *,
    probe: bool = True,
    session: requests.Session | None = None,
) -> CrawlJob:
    """Validate, optionally probe, and build the job for a start request."""

    request = parse_crawl_request(payload, config)
    if probe:
        probe_reachability(request.url, config, session=session)
    return request.to_job()


__all__ = [
    "CrawlRequest",
    "parse_crawl_request",
    "parse_page_budget",
    "prepare_job",
    "probe_reachability",
    "validate_start_url",
]
