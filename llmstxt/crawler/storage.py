"""Filesystem-backed storage for crawl results.

ResultStore owns the on-disk layout of one crawl run. It can be used directly
as an emitter so the CLI can tee the event stream to disk.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Mapping

from .constants import JSON_INDENT
from .events import CompleteUpdate, ErrorUpdate, ProgressEvent, ResultUpdate
from .types import CrawlJob, JSONDict, PageFetchResult, utc_now_iso


class ResultStore:
    """Persist crawl outputs under a single `output_dir` root."""

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)

        self.results_path = self.output_dir / "results.jsonl"
        self.errors_path = self.output_dir / "errors.jsonl"
        self.summary_path = self.output_dir / "crawl_summary.json"
        self.job_path = self.output_dir / "crawl_job.json"

        self._jsonl_lock = threading.Lock()
        self.output_dir.mkdir(parents=True, exist_ok=True)

    @property
    def paths(self) -> JSONDict:
        """Return output paths for logging/CLI status messages."""

        return {
            "output_dir": str(self.output_dir),
            "results": str(self.results_path),
            "errors": str(self.errors_path),
            "summary": str(self.summary_path),
            "job": str(self.job_path),
        }

    def __call__(self, event: ProgressEvent) -> None:
        self.record_event(event)

    def record_event(self, event: ProgressEvent) -> None:
        """Route one progress event to the matching output file."""

        if isinstance(event, ResultUpdate):
            self.save_result(event.result)
        elif isinstance(event, ErrorUpdate):
            self.save_error(event.to_json())
        elif isinstance(event, CompleteUpdate):
            summary = event.to_json()
            # Page bodies are already in results.jsonl.
            summary.pop("results", None)
            summary["finished_at"] = utc_now_iso()
            summary["stats"] = event.stats.to_json()
            self.save_summary(summary)

    def save_job(self, job: CrawlJob) -> None:
        self._atomic_write_json(self.job_path, job.to_json())

    def save_result(self, result: PageFetchResult) -> None:
        self._append_jsonl(self.results_path, result.to_json())

    def save_error(self, payload: Mapping[str, Any]) -> None:
        record = dict(payload)
        record.setdefault("recorded_at", utc_now_iso())
        self._append_jsonl(self.errors_path, record)

    def save_summary(self, payload: Mapping[str, Any]) -> None:
        self._atomic_write_json(self.summary_path, payload)

    def load_results(self) -> list[JSONDict]:
        if not self.results_path.exists():
            return []
        records: list[JSONDict] = []
        with self.results_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if line:
                    records.append(json.loads(line))
        return records

    def _append_jsonl(self, path: Path, payload: Mapping[str, Any]) -> None:
        line = json.dumps(payload, ensure_ascii=False, sort_keys=True)
        with self._jsonl_lock:
            with path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")

    @staticmethod
    def _atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
        content = json.dumps(dict(payload), ensure_ascii=False, indent=JSON_INDENT, sort_keys=True) + "\n"
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
        )
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise


__all__ = ["ResultStore"]
