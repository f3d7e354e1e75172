"""Heuristics that flag parked or squatted domains."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

from .constants import (
    AD_LINK_MARKERS,
    DEFAULT_AD_LINK_THRESHOLD,
    PARKING_BODY_PHRASES,
    PARKING_TITLE_PHRASES,
)


@dataclass(frozen=True, slots=True)
class ParkingSignals:
    """Individual signals gathered for one page."""

    body_phrases: tuple[str, ...] = ()
    title_phrases: tuple[str, ...] = ()
    ad_link_count: int = 0
    has_ad_iframes: bool = False
    redirected_hostname: str | None = None
    start_hostname: str | None = None
    ad_link_threshold: int = DEFAULT_AD_LINK_THRESHOLD
    reasons: tuple[str, ...] = field(default=())

    @property
    def parked(self) -> bool:
        return bool(self.reasons)


# Markers match whole URL tokens, so `/downloads/` is not an ad link.
_AD_LINK_RE = re.compile(
    r"(?<![a-z0-9])(?:" + "|".join(re.escape(marker) for marker in AD_LINK_MARKERS) + r")(?![a-z0-9])"
)


def count_ad_links(links: Iterable[str]) -> int:
    return sum(1 for link in links if link and _AD_LINK_RE.search(link.lower()))


def detect_parking(
    title: str | None,
    body_text: str | None,
    outbound_links: Iterable[str],
    redirected_hostname: str | None,
    start_hostname: str,
    *,
    has_ad_iframes: bool = False,
    ad_link_threshold: int = DEFAULT_AD_LINK_THRESHOLD,
) -> ParkingSignals:
    """Collect parking signals and the reasons that make the page positive."""

    body = (body_text or "").lower()
    lowered_title = (title or "").lower()

    body_hits = tuple(phrase for phrase in PARKING_BODY_PHRASES if phrase in body)
    title_hits = tuple(phrase for phrase in PARKING_TITLE_PHRASES if phrase in lowered_title)
    ad_links = count_ad_links(outbound_links)
    served = (redirected_hostname or "").lower()
    expected = (start_hostname or "").lower()

    reasons: list[str] = []
    if body_hits:
        reasons.append("body mentions " + ", ".join(repr(hit) for hit in body_hits))
    if ad_links > ad_link_threshold:
        reasons.append(f"{ad_links} advertising links > {ad_link_threshold}")
    if has_ad_iframes:
        reasons.append("advertising iframe present")
    if title_hits:
        reasons.append("title mentions " + ", ".join(repr(hit) for hit in title_hits))
    if served and served != expected:
        reasons.append(f"served from {served} instead of {expected}")

    return ParkingSignals(
        body_phrases=body_hits,
        title_phrases=title_hits,
        ad_link_count=ad_links,
        has_ad_iframes=has_ad_iframes,
        redirected_hostname=served or None,
        start_hostname=expected,
        ad_link_threshold=ad_link_threshold,
        reasons=tuple(reasons),
    )


def is_parked(
    title: str | None,
    body_text: str | None,
    outbound_links: Iterable[str],
    redirected_hostname: str | None,
    start_hostname: str,
    *,
    has_ad_iframes: bool = False,
    ad_link_threshold: int = DEFAULT_AD_LINK_THRESHOLD,
) -> bool:
    return detect_parking(
        title,
        body_text,
        outbound_links,
        redirected_hostname,
        start_hostname,
        has_ad_iframes=has_ad_iframes,
        ad_link_threshold=ad_link_threshold,
    ).parked


__all__ = ["ParkingSignals", "count_ad_links", "detect_parking", "is_parked"]
