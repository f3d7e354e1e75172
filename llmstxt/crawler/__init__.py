"""Crawler package: config, shared types, and crawl engine components."""

from .cache import TTLCache
from .config import CrawlConfig, load_config, save_config
from .errors import (
    CancellationError,
    ClientDisconnect,
    ContentError,
    CrawlerError,
    DomainParkingError,
    FetchError,
    InvalidStartRequest,
    NetworkError,
    PolicyError,
)
from .events import (
    CompleteUpdate,
    Emit,
    ErrorUpdate,
    EventChannel,
    ProgressEvent,
    ProgressUpdate,
    ResultUpdate,
    StreamEmitter,
    format_json_line,
    format_sse,
)
from .fetcher import PageFetcher
from .frontier import EnqueueResult, EnqueueStatus, Frontier
from .orchestrator import CrawlOrchestrator, crawl_site
from .parking import ParkingSignals, detect_parking, is_parked
from .request import CrawlRequest, parse_crawl_request, prepare_job, probe_reachability, validate_start_url
from .robots import RobotsCache
from .stats import StatsTracker
from .storage import ResultStore
from .types import (
    CompleteStatus,
    CrawlJob,
    CrawlState,
    CrawlStats,
    FetchOutcome,
    FetchOutcomeKind,
    FetchStrategy,
    PageFetchResult,
    ProgressStatus,
    RobotsCacheEntry,
    utc_now_iso,
)
from .url import canonicalize, extract_links_from_html, filter_outbound_links, host_from_url, resolve_url

__all__ = [
    "CancellationError",
    "ClientDisconnect",
    "CompleteStatus",
    "CompleteUpdate",
    "ContentError",
    "CrawlConfig",
    "CrawlJob",
    "CrawlOrchestrator",
    "CrawlRequest",
    "CrawlState",
    "CrawlStats",
    "CrawlerError",
    "DomainParkingError",
    "Emit",
    "EnqueueResult",
    "EnqueueStatus",
    "ErrorUpdate",
    "EventChannel",
    "FetchError",
    "FetchOutcome",
    "FetchOutcomeKind",
    "FetchStrategy",
    "Frontier",
    "InvalidStartRequest",
    "NetworkError",
    "PageFetchResult",
    "PageFetcher",
    "ParkingSignals",
    "PolicyError",
    "ProgressEvent",
    "ProgressStatus",
    "ProgressUpdate",
    "ResultStore",
    "ResultUpdate",
    "RobotsCache",
    "RobotsCacheEntry",
    "StatsTracker",
    "StreamEmitter",
    "TTLCache",
    "canonicalize",
    "crawl_site",
    "detect_parking",
    "extract_links_from_html",
    "filter_outbound_links",
    "format_json_line",
    "format_sse",
    "host_from_url",
    "is_parked",
    "load_config",
    "parse_crawl_request",
    "prepare_job",
    "probe_reachability",
    "resolve_url",
    "save_config",
    "utc_now_iso",
    "validate_start_url",
]
