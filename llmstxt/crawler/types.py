"""Core type definitions for the crawl engine.

This module is intentionally dependency-light so other crawler modules can import
shared records without introducing cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .errors import FetchError


JSONPrimitive = str | int | float | bool | None
JSONValue = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONDict = dict[str, JSONValue]


def utc_now_iso() -> str:
    """Return an RFC3339-like UTC timestamp string for events and manifests."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class FetchStrategy(str, Enum):
    """Strategy that produced a page result."""

    RENDERED = "rendered"
    FALLBACK = "fallback"


class FetchOutcomeKind(str, Enum):
    """Tag of a `FetchOutcome`."""

    RENDERED = "rendered"
    FALLBACK = "fallback"
    FAILED = "failed"


class CrawlState(str, Enum):
    """Orchestrator lifecycle states. Terminal states are final."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in {CrawlState.COMPLETED, CrawlState.CANCELED, CrawlState.FAILED}


class CompleteStatus(str, Enum):
    """Final status carried by the `complete` event."""

    SUCCESS = "success"
    CANCELED = "canceled"
    ERROR = "error"


class ProgressStatus(str, Enum):
    """Status values carried by `progress` events."""

    LOADING = "loading"
    EXTRACTING = "extracting"
    SUCCESS = "success"
    ERROR = "error"
    CANCELED = "canceled"


@dataclass(frozen=True, slots=True)
class CrawlJob:
    """One crawl request. `page_budget=None` means unbounded."""

    start_url: str
    start_hostname: str
    page_budget: int | None = None
    created_at: str = field(default_factory=utc_now_iso)

    def __post_init__(self) -> None:
        if self.page_budget is not None and self.page_budget <= 0:
            raise ValueError("page_budget must be > 0 when set")
        if not self.start_hostname:
            raise ValueError("start_hostname cannot be empty")

    @property
    def unbounded(self) -> bool:
        return self.page_budget is None

    def to_json(self) -> JSONDict:
        return {
            "start_url": self.start_url,
            "start_hostname": self.start_hostname,
            "page_budget": self.page_budget,
            "created_at": self.created_at,
        }


@dataclass(frozen=True, slots=True)
class PageFetchResult:
    """Usable content extracted from one page."""

    url: str
    title: str
    text: str
    links: list[str] = field(default_factory=list)
    strategy: FetchStrategy = FetchStrategy.RENDERED
    final_url: str | None = None
    fetched_at: str = field(default_factory=utc_now_iso)

    def to_json(self) -> JSONDict:
        return {
            "url": self.url,
            "title": self.title,
            "text": self.text,
            "links": list(self.links),
            "strategy": self.strategy.value,
            "final_url": self.final_url,
            "fetched_at": self.fetched_at,
        }


@dataclass(frozen=True, slots=True)
class FetchOutcome:
    """Tagged result of `PageFetcher.fetch_page`: Rendered | Fallback | Failed."""

    kind: FetchOutcomeKind
    url: str
    result: PageFetchResult | None = None
    error: "FetchError | None" = None
    canceled: bool = False

    @classmethod
    def rendered(cls, result: PageFetchResult) -> "FetchOutcome":
        return cls(kind=FetchOutcomeKind.RENDERED, url=result.url, result=result)

    @classmethod
    def fallback(cls, result: PageFetchResult) -> "FetchOutcome":
        return cls(kind=FetchOutcomeKind.FALLBACK, url=result.url, result=result)

    @classmethod
    def failed(cls, url: str, error: "FetchError", *, canceled: bool = False) -> "FetchOutcome":
        return cls(kind=FetchOutcomeKind.FAILED, url=url, error=error, canceled=canceled)

    @property
    def ok(self) -> bool:
        return self.kind != FetchOutcomeKind.FAILED and self.result is not None

    @property
    def reason(self) -> str | None:
        return None if self.error is None else str(self.error)


@dataclass(frozen=True, slots=True)
class RobotsCacheEntry:
    """Cached robots policy for one domain.

    `policy` is a parsed `RobotFileParser` or `None` when the fetch failed.
    """

    domain: str
    policy: Any
    fetched_at: float
    attempted_and_failed: bool = False


@dataclass(frozen=True, slots=True)
class CrawlStats:
    """Immutable snapshot of the orchestrator's running counters."""

    attempted: int = 0
    successful: int = 0
    failed: int = 0
    skipped_robots: int = 0
    discovered: int = 0
    budget: int | None = None

    @property
    def progress(self) -> int:
        """Percentage complete in 0-100.

        Bounded jobs measure against the budget; unbounded jobs against the
        number of URLs discovered so far.
        """

        denominator = self.budget if self.budget is not None else self.discovered
        if not denominator:
            return 0
        return min(100, round(self.attempted / denominator * 100))

    def to_json(self) -> JSONDict:
        return {
            "attempted": self.attempted,
            "successful": self.successful,
            "failed": self.failed,
            "skipped_robots": self.skipped_robots,
            "discovered": self.discovered,
            "budget": self.budget,
            "progress": self.progress,
        }


__all__ = [
    "CompleteStatus",
    "CrawlJob",
    "CrawlState",
    "CrawlStats",
    "FetchOutcome",
    "FetchOutcomeKind",
    "FetchStrategy",
    "JSONDict",
    "JSONPrimitive",
    "JSONValue",
    "PageFetchResult",
    "ProgressStatus",
    "RobotsCacheEntry",
    "utc_now_iso",
]
