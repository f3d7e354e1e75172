"""Exception taxonomy for the crawl engine."""

from __future__ import annotations


class CrawlerError(Exception):
    """Base class for crawler errors."""


class PolicyError(CrawlerError):
    """URL disallowed by robots.txt. A skip, not a failure."""

    def __init__(self, message: str = "Disallowed by robots.txt", *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class FetchError(CrawlerError):
    """No usable content could be obtained for one page."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class NetworkError(FetchError):
    """Navigation, HTTP, or transport failure."""


class ContentError(FetchError):
    """Page loaded but yielded no usable title or text."""


class DomainParkingError(FetchError):
    """Page classified as a parked or squatted domain. Terminal for the URL."""

    def __init__(
        self,
        message: str = "Domain parking or squatting page detected. This is likely not a real website.",
        *,
        url: str | None = None,
        reasons: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message, url=url)
        self.reasons = reasons


class CancellationError(FetchError):
    """Job-level cancellation observed while fetching."""


class ClientDisconnect(CrawlerError):
    """Transport is no longer accepting events."""


class InvalidStartRequest(CrawlerError):
    """Crawl start request rejected before any crawling begins."""

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_json(self) -> dict[str, str | None]:
        return {"error": self.message, "details": self.details}


__all__ = [
    "CancellationError",
    "ClientDisconnect",
    "ContentError",
    "CrawlerError",
    "DomainParkingError",
    "FetchError",
    "InvalidStartRequest",
    "NetworkError",
    "PolicyError",
]
