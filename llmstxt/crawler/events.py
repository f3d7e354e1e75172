"""Progress event records and the outbound channels that carry them.

The orchestrator only ever calls `emit(event)`. Transports own detecting that
the consumer went away and turn that into job cancellation.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterator, TextIO, Union

from .errors import ClientDisconnect
from .types import CompleteStatus, CrawlStats, JSONDict, PageFetchResult, ProgressStatus


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProgressUpdate:
    status: ProgressStatus
    stats: CrawlStats
    message: str
    current_url: str | None = None
    links_found: int | None = None

    type = "progress"

    def to_json(self) -> JSONDict:
        payload: JSONDict = {
            "type": self.type,
            "status": self.status.value,
            "attempted": self.stats.attempted,
            "successful": self.stats.successful,
            "progress": self.stats.progress,
            "message": self.message,
        }
        if self.current_url is not None:
            payload["currentUrl"] = self.current_url
        if self.links_found is not None:
            payload["linksFound"] = self.links_found
        return payload


@dataclass(frozen=True, slots=True)
class ResultUpdate:
    result: PageFetchResult
    stats: CrawlStats

    type = "result"

    def to_json(self) -> JSONDict:
        return {
            "type": self.type,
            "result": self.result.to_json(),
            "attempted": self.stats.attempted,
            "successful": self.stats.successful,
        }


@dataclass(frozen=True, slots=True)
class ErrorUpdate:
    message: str
    stats: CrawlStats
    url: str | None = None
    error_type: str | None = None

    type = "error"

    def to_json(self) -> JSONDict:
        payload: JSONDict = {
            "type": self.type,
            "message": self.message,
            "attempted": self.stats.attempted,
            "successful": self.stats.successful,
        }
        if self.url is not None:
            payload["url"] = self.url
        if self.error_type is not None:
            payload["errorType"] = self.error_type
        return payload


@dataclass(frozen=True, slots=True)
class CompleteUpdate:
    status: CompleteStatus
    stats: CrawlStats
    message: str
    results: list[PageFetchResult] = field(default_factory=list)
    duration: float | None = None

    type = "complete"

    @property
    def crawled_urls(self) -> list[str]:
        return [result.url for result in self.results]

    def to_json(self) -> JSONDict:
        return {
            "type": self.type,
            "status": self.status.value,
            "attempted": self.stats.attempted,
            "successful": self.stats.successful,
            "progress": 100,
            "message": self.message,
            "duration": self.duration,
            "crawledUrls": self.crawled_urls,
            "results": [result.to_json() for result in self.results],
        }


ProgressEvent = Union[ProgressUpdate, ResultUpdate, ErrorUpdate, CompleteUpdate]
Emit = Callable[[ProgressEvent], None]


def format_sse(event: ProgressEvent) -> str:
    """Frame one event as a server-sent-events `data:` message."""

    return f"data: {json.dumps(event.to_json(), ensure_ascii=False)}\n\n"


def format_json_line(event: ProgressEvent) -> str:
    return json.dumps(event.to_json(), ensure_ascii=False) + "\n"


class EventChannel:
    """One-way queue between the orchestrator thread and a transport.

    The producer calls `emit` and finally `finish`. The consumer iterates and
    calls `disconnect` if its client goes away, which sets `cancel`.
    """

    _END = object()

    def __init__(self, cancel: threading.Event) -> None:
        self.cancel = cancel
        self._queue: queue.Queue[object] = queue.Queue()
        self._lock = threading.Lock()
        self._disconnected = False
        self._finished = False
        self._dropped = 0

    @property
    def disconnected(self) -> bool:
        with self._lock:
            return self._disconnected

    def emit(self, event: ProgressEvent) -> None:
        with self._lock:
            if self._disconnected:
                self._dropped += 1
                first_drop = self._dropped == 1
            else:
                self._queue.put(event)
                return

        if first_drop:
            LOGGER.info("Client disconnected, dropping %s event and canceling crawl", event.type)
        self.cancel.set()

    def finish(self) -> None:
        """Mark end of stream. Idempotent."""

        with self._lock:
            if self._finished:
                return
            self._finished = True
        self._queue.put(self._END)

    def disconnect(self) -> None:
        """Called by the transport when its client stops accepting events."""

        with self._lock:
            if self._disconnected:
                return
            self._disconnected = True
        LOGGER.info("Event consumer disconnected; signalling cancellation")
        self.cancel.set()

    def __iter__(self) -> Iterator[ProgressEvent]:
        while True:
            item = self._queue.get()
            if item is self._END:
                return
            yield item  # type: ignore[misc]


class StreamEmitter:
    """Write each event as one JSON line to a text stream.

    A failed write means the reader is gone: the emitter raises no further
    errors, it sets `cancel` and drops subsequent events.
    """

    def __init__(
        self,
        stream: TextIO,
        cancel: threading.Event,
        *,
        formatter: Callable[[ProgressEvent], str] = format_json_line,
    ) -> None:
        self.stream = stream
        self.cancel = cancel
        self.formatter = formatter
        self._lock = threading.Lock()
        self._disconnected = False

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    def __call__(self, event: ProgressEvent) -> None:
        self.emit(event)

    def emit(self, event: ProgressEvent) -> None:
        with self._lock:
            if self._disconnected:
                return
            try:
                self._write(event)
            except ClientDisconnect as exc:
                self._disconnected = True
                LOGGER.warning("Event stream closed: %s", exc)
                self.cancel.set()

    def _write(self, event: ProgressEvent) -> None:
        try:
            self.stream.write(self.formatter(event))
            self.stream.flush()
        except (BrokenPipeError, OSError, ValueError) as exc:
            raise ClientDisconnect(str(exc)) from exc


__all__ = [
    "CompleteUpdate",
    "Emit",
    "ErrorUpdate",
    "EventChannel",
    "ProgressEvent",
    "ProgressUpdate",
    "ResultUpdate",
    "StreamEmitter",
    "format_json_line",
    "format_sse",
]
