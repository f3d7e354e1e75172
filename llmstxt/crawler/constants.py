"""Default values shared by config, fetcher, robots cache, and orchestrator."""

from __future__ import annotations

DEFAULT_CONCURRENCY = 3
DEFAULT_PAGE_TIMEOUT_SECONDS = 30.0
DEFAULT_HTTP_TIMEOUT_SECONDS = 15.0
DEFAULT_ROBOTS_TIMEOUT_SECONDS = 5.0
DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0
DEFAULT_ROBOTS_CACHE_TTL_SECONDS = 60 * 60 * 24
DEFAULT_TEST_MODE_MAX_PAGES = 5
DEFAULT_AD_LINK_THRESHOLD = 10
DEFAULT_NETWORK_IDLE_SECONDS = 0.5
DEFAULT_HEADLESS = True
DEFAULT_VIEWPORT = (1280, 800)

CRAWLER_USER_AGENT = "llmstxt-generator"
ROBOTS_FETCH_USER_AGENT = "Mozilla/5.0 (compatible; llmstxt-generator/1.0)"
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/96.0.4664.110 Safari/537.36"
)

UNBOUNDED_BUDGET = "unbounded"

JSON_INDENT = 2
SUPPORTED_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")

TRACKING_QUERY_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "fbclid",
        "gclid",
        "msclkid",
        "ref",
        "source",
        "mc_cid",
        "mc_eid",
    }
)

STATIC_ASSET_EXTENSIONS = frozenset(
    {
        # Images
        ".jpg", ".jpeg", ".png", ".gif", ".ico", ".svg", ".webp", ".bmp",
        # Styles/Scripts/Feeds
        ".css", ".js", ".xml", ".rss",
        # Documents
        ".pdf",
        # Fonts
        ".woff", ".woff2", ".ttf", ".eot", ".otf",
        # Media
        ".mp4", ".mp3", ".webm",
        # Archives
        ".zip", ".gz", ".tar", ".rar", ".7z",
    }
)

PARKING_BODY_PHRASES = (
    "domain for sale",
    "buy this domain",
    "domain may be for sale",
    "parked domain",
    "domain parking",
    "domain is for sale",
    "purchase this domain",
    "traffic monetization",
    "domain monetization",
)
PARKING_TITLE_PHRASES = (
    "domain for sale",
    "buy this domain",
    "is for sale",
)
AD_LINK_MARKERS = ("ads", "click", "domain-for-sale")
AD_IFRAME_SELECTOR = 'iframe[src*="ad"], iframe[src*="ads"], iframe[id*="ad-"]'
