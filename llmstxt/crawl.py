"""CLI entrypoint: crawl one site and stream progress events as JSON lines."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
import threading
from typing import Any

if __package__ in {None, ""}:
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

from llmstxt.crawler import (
    CrawlConfig,
    CrawlJob,
    CrawlOrchestrator,
    CrawlState,
    Emit,
    InvalidStartRequest,
    ProgressEvent,
    ResultStore,
    StreamEmitter,
    load_config,
    prepare_job,
)
from llmstxt.crawler.constants import UNBOUNDED_BUDGET


LOGGER = logging.getLogger("llmstxt.crawl")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_REJECTED = 2
EXIT_CANCELED = 130


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crawl a single website and stream page results as JSON lines.",
    )

    parser.add_argument("--url", type=str, required=True, help="Start URL (http:// or https://).")

    budget = parser.add_mutually_exclusive_group()
    budget.add_argument("--max_pages", type=int, default=None, help="Page budget (positive integer).")
    budget.add_argument(
        "--unbounded",
        action="store_true",
        help="Crawl until the frontier is exhausted.",
    )
    budget.add_argument(
        "--test_mode",
        action="store_true",
        help="Use the small test-mode page budget.",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML crawl config.",
    )
    parser.add_argument(
        "--output_dir",
        type=Path,
        default=None,
        help="Persist results.jsonl, errors.jsonl, crawl_summary.json and crawl.log here.",
    )
    parser.add_argument("--concurrency", type=int, default=None)
    parser.add_argument(
        "--no_probe",
        action="store_true",
        help="Skip the HEAD reachability probe of the start URL.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config is not None:
        payload = load_config(args.config).to_dict()
    else:
        payload = CrawlConfig().to_dict()

    if args.concurrency is not None:
        payload["concurrency"] = args.concurrency

    return CrawlConfig.from_dict(payload)


def build_request_payload(args: argparse.Namespace) -> dict[str, Any]:
    if args.unbounded:
        page_budget: Any = UNBOUNDED_BUDGET
    else:
        page_budget = args.max_pages
    return {"url": args.url, "pageBudget": page_budget, "testMode": bool(args.test_mode)}


def setup_logging(log_dir: Path | None, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    # stdout carries the event stream.
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / "crawl.log", encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logging.getLogger("selenium").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


class _CrawlThread(threading.Thread):
    """Runs the orchestrator off the main thread so Ctrl-C can reach `main`."""

    def __init__(self, orchestrator: CrawlOrchestrator, job: CrawlJob, cancel: threading.Event, emit: Emit) -> None:
        super().__init__(name="crawl-job", daemon=True)
        self.orchestrator = orchestrator
        self.job = job
        self.cancel = cancel
        self.emit = emit
        self.error: BaseException | None = None

    def run(self) -> None:
        try:
            self.orchestrator.run(self.job, self.cancel, self.emit)
        except Exception as exc:
            self.error = exc


def run_job(
    job: CrawlJob,
    config: CrawlConfig,
    *,
    stream=None,
    store: ResultStore | None = None,
    orchestrator: CrawlOrchestrator | None = None,
    cancel: threading.Event | None = None,
) -> int:
    """Run one job, streaming events to `stream`, and return the exit code."""

    cancel = cancel or threading.Event()
    emitter = StreamEmitter(stream or sys.stdout, cancel)

    def emit(event: ProgressEvent) -> None:
        if store is not None:
            store.record_event(event)
        emitter.emit(event)

    orchestrator = orchestrator or CrawlOrchestrator(config)
    worker = _CrawlThread(orchestrator, job, cancel, emit)
    worker.start()

    while worker.is_alive():
        try:
            worker.join(timeout=0.5)
        except KeyboardInterrupt:
            if cancel.is_set():
                LOGGER.warning("Interrupted again; waiting for in-flight pages to stop")
            else:
                LOGGER.warning("Interrupted by user, canceling crawl")
                cancel.set()

    if worker.error is not None:
        LOGGER.error("Crawl execution failed: %s", worker.error)
        return EXIT_FAILED
    if orchestrator.state == CrawlState.CANCELED:
        return EXIT_CANCELED
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.output_dir, verbose=args.verbose)

    try:
        config = build_config(args)
    except Exception as exc:
        logging.error("Failed to build config: %s", exc)
        return EXIT_REJECTED

    try:
        job = prepare_job(build_request_payload(args), config, probe=not args.no_probe)
    except InvalidStartRequest as exc:
        logging.error("Rejected crawl request: %s (%s)", exc.message, exc.details)
        print(json.dumps(exc.to_json(), ensure_ascii=False), flush=True)
        return EXIT_REJECTED

    store = None
    if args.output_dir is not None:
        store = ResultStore(args.output_dir)
        store.save_job(job)
        logging.info("Writing results to %s", store.paths["output_dir"])

    logging.info(
        "Starting crawl: url=%s, budget=%s, concurrency=%d",
        job.start_url,
        UNBOUNDED_BUDGET if job.unbounded else job.page_budget,
        config.concurrency,
    )
    return run_job(job, config, store=store)


if __name__ == "__main__":
    raise SystemExit(main())
