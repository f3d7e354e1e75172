"""URL canonicalization, same-host filtering, and link extraction helpers."""

from __future__ import annotations

import re
from typing import Iterable
from urllib.parse import unquote_plus, urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from .constants import STATIC_ASSET_EXTENSIONS, TRACKING_QUERY_PARAMS


DEFAULT_ALLOWED_SCHEMES = ("http", "https")
SKIP_HREF_PREFIXES = ("javascript:", "mailto:", "tel:", "data:")

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def _has_default_port(scheme: str, port: int | None) -> bool:
    if port is None:
        return False
    return (scheme == "http" and port == 80) or (scheme == "https" and port == 443)


def _normalize_netloc(parsed) -> str:  # urllib.parse.SplitResult
    host = (parsed.hostname or "").lower()
    if not host:
        return parsed.netloc.lower()

    port = parsed.port
    if port is not None and not _has_default_port(parsed.scheme.lower(), port):
        return f"{host}:{port}"
    return host


def _strip_tracking_params(query: str) -> str:
    # Kept pieces are rejoined verbatim so `?q` and `;` survive unchanged.
    if not query:
        return ""
    kept = [
        piece
        for piece in query.split("&")
        if piece and unquote_plus(piece.split("=", 1)[0]).strip().lower() not in TRACKING_QUERY_PARAMS
    ]
    return "&".join(kept)


def canonicalize(raw_url: str) -> str:
    """Return the dedup key for a URL.

    Tracking parameters and trailing slashes are removed, fragments are dropped,
    and SPA hash routes (`/#/docs`) are rewritten to the equivalent path
    (`/docs`). Output is idempotent. Input that cannot be parsed is returned
    unchanged.
    """

    if not raw_url or not raw_url.strip():
        return raw_url

    candidate = raw_url.strip()
    if not _SCHEME_RE.match(candidate):
        candidate = f"https://{candidate}"

    try:
        parsed = urlsplit(candidate)
        if not parsed.netloc or not parsed.hostname:
            return raw_url

        scheme = parsed.scheme.lower()
        netloc = _normalize_netloc(parsed)

        if parsed.fragment.startswith("/"):
            # Hash route replaces the real path and query for comparison.
            return canonicalize(f"{scheme}://{netloc}{parsed.fragment}")

        path = parsed.path.rstrip("/")
        query = _strip_tracking_params(parsed.query)
        return urlunsplit((scheme, netloc, path, query, ""))
    except ValueError:
        return raw_url


def host_from_url(url: str) -> str:
    """Return the exact lowercase hostname of a URL, or '' when absent."""

    try:
        return (urlsplit(url).hostname or "").strip().lower().strip(".")
    except ValueError:
        return ""


def is_http_url(url: str) -> bool:
    """Return True if URL is absolute with an http/https scheme."""

    try:
        parsed = urlsplit(url)
    except ValueError:
        return False
    return bool(parsed.netloc) and parsed.scheme.lower() in DEFAULT_ALLOWED_SCHEMES


def is_static_asset(url: str) -> bool:
    """Return True when the URL path ends with a denied asset extension."""

    try:
        path = urlsplit(url).path.lower()
    except ValueError:
        return False
    dot = path.rfind(".")
    if dot == -1 or "/" in path[dot:]:
        return False
    return path[dot:] in STATIC_ASSET_EXTENSIONS


def is_same_host(url: str, hostname: str) -> bool:
    """Exact hostname match; subdomains do not count."""

    return bool(hostname) and host_from_url(url) == hostname.lower()


def filter_outbound_links(links: Iterable[str], start_hostname: str) -> list[str]:
    """Keep http(s) links on the start hostname that are not static assets.

    Preserves input order and drops exact duplicates.
    """

    out: list[str] = []
    seen: set[str] = set()
    for link in links:
        if not link or link in seen:
            continue
        if not is_http_url(link):
            continue
        if not is_same_host(link, start_hostname):
            continue
        if is_static_asset(link):
            continue
        seen.add(link)
        out.append(link)
    return out


def resolve_url(base_url: str, href: str | None) -> str | None:
    """Resolve a possibly relative link against base URL and validate scheme."""

    if href is None:
        return None

    candidate = href.strip()
    if not candidate:
        return None
    if candidate.startswith("#") and not candidate.startswith("#/"):
        return None

    lowered = candidate.lower()
    if any(lowered.startswith(prefix) for prefix in SKIP_HREF_PREFIXES):
        return None

    try:
        absolute = urljoin(base_url, candidate)
    except ValueError:
        return None
    return absolute if is_http_url(absolute) else None


def extract_links_from_html(html: str | bytes, *, base_url: str) -> list[str]:
    """Extract absolute links from anchor tags in document order."""

    soup = BeautifulSoup(html, "lxml")
    return extract_links_from_soup(soup, base_url=base_url)


def extract_links_from_soup(soup: BeautifulSoup, *, base_url: str) -> list[str]:
    out: list[str] = []
    for element in soup.find_all("a"):
        resolved = resolve_url(base_url, element.get("href"))
        if resolved:
            out.append(resolved)
    return out


__all__ = [
    "DEFAULT_ALLOWED_SCHEMES",
    "SKIP_HREF_PREFIXES",
    "canonicalize",
    "extract_links_from_html",
    "extract_links_from_soup",
    "filter_outbound_links",
    "host_from_url",
    "is_http_url",
    "is_same_host",
    "is_static_asset",
    "resolve_url",
]
