"""Typed crawler configuration with JSON/YAML load/save helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore

from .constants import (
    BROWSER_USER_AGENT,
    CRAWLER_USER_AGENT,
    DEFAULT_AD_LINK_THRESHOLD,
    DEFAULT_CONCURRENCY,
    DEFAULT_HEADLESS,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_NETWORK_IDLE_SECONDS,
    DEFAULT_PAGE_TIMEOUT_SECONDS,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    DEFAULT_ROBOTS_CACHE_TTL_SECONDS,
    DEFAULT_ROBOTS_TIMEOUT_SECONDS,
    DEFAULT_TEST_MODE_MAX_PAGES,
    DEFAULT_VIEWPORT,
    JSON_INDENT,
    ROBOTS_FETCH_USER_AGENT,
    SUPPORTED_CONFIG_SUFFIXES,
)
from .types import JSONDict


def _as_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid float for '{key}': {value!r}") from exc


def _as_int(value: Any, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid int for '{key}': {value!r}") from exc


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"Invalid bool for '{key}': {value!r}")


def _as_viewport(value: Any) -> tuple[int, int]:
    if isinstance(value, Mapping):
        return (_as_int(value.get("width"), "viewport.width"), _as_int(value.get("height"), "viewport.height"))
    try:
        width, height = value
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid viewport: {value!r}") from exc
    return (_as_int(width, "viewport.width"), _as_int(height, "viewport.height"))


@dataclass(slots=True)
class CrawlConfig:
    """Engine-wide settings shared by fetcher, robots cache, and orchestrator."""

    concurrency: int = DEFAULT_CONCURRENCY

    page_timeout_seconds: float = DEFAULT_PAGE_TIMEOUT_SECONDS
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    robots_timeout_seconds: float = DEFAULT_ROBOTS_TIMEOUT_SECONDS
    probe_timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS
    network_idle_seconds: float = DEFAULT_NETWORK_IDLE_SECONDS

    robots_cache_ttl_seconds: float = DEFAULT_ROBOTS_CACHE_TTL_SECONDS
    test_mode_max_pages: int = DEFAULT_TEST_MODE_MAX_PAGES
    ad_link_threshold: int = DEFAULT_AD_LINK_THRESHOLD

    crawler_user_agent: str = CRAWLER_USER_AGENT
    robots_fetch_user_agent: str = ROBOTS_FETCH_USER_AGENT
    browser_user_agent: str = BROWSER_USER_AGENT

    headless: bool = DEFAULT_HEADLESS
    viewport: tuple[int, int] = DEFAULT_VIEWPORT

    def __post_init__(self) -> None:
        if self.concurrency <= 0:
            raise ValueError("concurrency must be > 0")
        for key in (
            "page_timeout_seconds",
            "http_timeout_seconds",
            "robots_timeout_seconds",
            "probe_timeout_seconds",
            "robots_cache_ttl_seconds",
        ):
            if getattr(self, key) <= 0:
                raise ValueError(f"{key} must be > 0")
        if self.network_idle_seconds < 0:
            raise ValueError("network_idle_seconds must be >= 0")
        if self.test_mode_max_pages <= 0:
            raise ValueError("test_mode_max_pages must be > 0")
        if self.ad_link_threshold < 0:
            raise ValueError("ad_link_threshold must be >= 0")
        if not self.crawler_user_agent.strip():
            raise ValueError("crawler_user_agent cannot be empty")

    def to_dict(self) -> JSONDict:
        """Serialize config for manifests and reproducibility."""

        return {
            "concurrency": self.concurrency,
            "page_timeout_seconds": self.page_timeout_seconds,
            "http_timeout_seconds": self.http_timeout_seconds,
            "robots_timeout_seconds": self.robots_timeout_seconds,
            "probe_timeout_seconds": self.probe_timeout_seconds,
            "network_idle_seconds": self.network_idle_seconds,
            "robots_cache_ttl_seconds": self.robots_cache_ttl_seconds,
            "test_mode_max_pages": self.test_mode_max_pages,
            "ad_link_threshold": self.ad_link_threshold,
            "crawler_user_agent": self.crawler_user_agent,
            "robots_fetch_user_agent": self.robots_fetch_user_agent,
            "browser_user_agent": self.browser_user_agent,
            "headless": self.headless,
            "viewport": {"width": self.viewport[0], "height": self.viewport[1]},
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CrawlConfig":
        """Build config from a parsed dictionary. Missing keys keep defaults."""

        return cls(
            concurrency=_as_int(payload.get("concurrency", DEFAULT_CONCURRENCY), "concurrency"),
            page_timeout_seconds=_as_float(
                payload.get("page_timeout_seconds", DEFAULT_PAGE_TIMEOUT_SECONDS),
                "page_timeout_seconds",
            ),
            http_timeout_seconds=_as_float(
                payload.get("http_timeout_seconds", DEFAULT_HTTP_TIMEOUT_SECONDS),
                "http_timeout_seconds",
            ),
            robots_timeout_seconds=_as_float(
                payload.get("robots_timeout_seconds", DEFAULT_ROBOTS_TIMEOUT_SECONDS),
                "robots_timeout_seconds",
            ),
            probe_timeout_seconds=_as_float(
                payload.get("probe_timeout_seconds", DEFAULT_PROBE_TIMEOUT_SECONDS),
                "probe_timeout_seconds",
            ),
            network_idle_seconds=_as_float(
                payload.get("network_idle_seconds", DEFAULT_NETWORK_IDLE_SECONDS),
                "network_idle_seconds",
            ),
            robots_cache_ttl_seconds=_as_float(
                payload.get("robots_cache_ttl_seconds", DEFAULT_ROBOTS_CACHE_TTL_SECONDS),
                "robots_cache_ttl_seconds",
            ),
            test_mode_max_pages=_as_int(
                payload.get("test_mode_max_pages", DEFAULT_TEST_MODE_MAX_PAGES),
                "test_mode_max_pages",
            ),
            ad_link_threshold=_as_int(
                payload.get("ad_link_threshold", DEFAULT_AD_LINK_THRESHOLD),
                "ad_link_threshold",
            ),
            crawler_user_agent=str(payload.get("crawler_user_agent", CRAWLER_USER_AGENT)),
            robots_fetch_user_agent=str(payload.get("robots_fetch_user_agent", ROBOTS_FETCH_USER_AGENT)),
            browser_user_agent=str(payload.get("browser_user_agent", BROWSER_USER_AGENT)),
            headless=_as_bool(payload.get("headless", DEFAULT_HEADLESS), "headless"),
            viewport=_as_viewport(payload.get("viewport", DEFAULT_VIEWPORT)),
        )


def _load_yaml(path: Path) -> dict[str, Any]:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML config at {path} must be a mapping at top level")
    return data


def load_config(path: str | Path) -> CrawlConfig:
    """Load CrawlConfig from JSON/YAML path."""

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        raise ValueError(
            f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
        )

    if suffix == ".json":
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    else:
        payload = _load_yaml(config_path)

    if not isinstance(payload, dict):
        raise ValueError(f"Config at {config_path} must be a mapping")

    return CrawlConfig.from_dict(payload)


def save_config(config: CrawlConfig, path: str | Path) -> None:
    """Save CrawlConfig as JSON or YAML based on file extension."""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = out_path.suffix.lower()
    payload = config.to_dict()

    if suffix == ".json":
        out_path.write_text(
            json.dumps(payload, indent=JSON_INDENT, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return

    if suffix in {".yaml", ".yml"}:
        out_path.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
        return

    raise ValueError(
        f"Unsupported config suffix '{suffix}'. Supported: {SUPPORTED_CONFIG_SUFFIXES}"
    )


__all__ = [
    "CrawlConfig",
    "load_config",
    "save_config",
]
