"""Per-domain robots.txt policy cache with fail-open, fetch-once semantics."""

from __future__ import annotations

import logging
import threading
from urllib.robotparser import RobotFileParser

import requests

from .cache import TTLCache
from .config import CrawlConfig
from .errors import PolicyError
from .types import RobotsCacheEntry
from .url import host_from_url


LOGGER = logging.getLogger(__name__)


class RobotsCache:
    """Answer `is_allowed(url)` using cached robots policies keyed by domain.

    - A live entry is always reused; nothing is refetched before the TTL ends.
    - A failed fetch (non-2xx or network error) is cached as
      `attempted_and_failed` and treated as allowed until it expires.
    - Concurrent lookups for the same domain share one robots fetch.
    """

    def __init__(
        self,
        config: CrawlConfig | None = None,
        *,
        store: TTLCache[RobotsCacheEntry] | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config or CrawlConfig()
        self.store: TTLCache[RobotsCacheEntry] = (
            store if store is not None else TTLCache(self.config.robots_cache_ttl_seconds)
        )
        self._session = session

        self._locks_guard = threading.Lock()
        self._domain_locks: dict[str, threading.Lock] = {}

    def is_allowed(self, url: str) -> bool:
        domain = host_from_url(url)
        if not domain:
            return True

        entry = self.entry_for(domain)
        if entry.policy is None:
            return True

        try:
            allowed = entry.policy.can_fetch(self.config.crawler_user_agent, url)
        except Exception as exc:
            LOGGER.warning("Robots evaluation failed for %s: %s", url, exc)
            return True

        # Ambiguous evaluation counts as allowed.
        if allowed is None:
            return True
        if not allowed:
            LOGGER.info("URL %s is disallowed by robots.txt", url)
        return bool(allowed)

    def ensure_allowed(self, url: str) -> None:
        """Raise `PolicyError` when robots.txt disallows `url`."""

        if not self.is_allowed(url):
            raise PolicyError(url=url)

    def entry_for(self, domain: str) -> RobotsCacheEntry:
        """Return the cached entry for `domain`, fetching it at most once per TTL."""

        entry = self.store.get(domain)
        if entry is not None:
            if entry.attempted_and_failed:
                LOGGER.debug("Previous robots.txt fetch for %s failed, skipping", domain)
            return entry

        with self._lock_for(domain):
            entry = self.store.get(domain)
            if entry is not None:
                return entry
            entry = self._fetch(domain)
            self.store.set(domain, entry)
            return entry

    def _lock_for(self, domain: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._domain_locks.get(domain)
            if lock is None:
                lock = threading.Lock()
                self._domain_locks[domain] = lock
            return lock

    def _fetch(self, domain: str) -> RobotsCacheEntry:
        robots_url = f"https://{domain}/robots.txt"
        LOGGER.info("Fetching robots.txt from %s", robots_url)
        now = self.store.now()

        try:
            response = self._http().get(
                robots_url,
                headers={"User-Agent": self.config.robots_fetch_user_agent},
                timeout=self.config.robots_timeout_seconds,
            )
        except requests.RequestException as exc:
            LOGGER.warning("Error fetching robots.txt for %s: %s", domain, exc)
            return RobotsCacheEntry(domain=domain, policy=None, fetched_at=now, attempted_and_failed=True)

        if not response.ok:
            LOGGER.info("No robots.txt for %s (status %s)", domain, response.status_code)
            return RobotsCacheEntry(domain=domain, policy=None, fetched_at=now, attempted_and_failed=True)

        parser = RobotFileParser()
        parser.set_url(robots_url)
        parser.parse(response.text.splitlines())
        LOGGER.info("Parsed and cached robots.txt for %s", domain)
        return RobotsCacheEntry(domain=domain, policy=parser, fetched_at=now)

    def _http(self):
        return self._session if self._session is not None else requests


__all__ = ["RobotsCache"]
