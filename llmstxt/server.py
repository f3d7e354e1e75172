"""Flask app that streams crawl progress to the browser as server-sent events."""

from __future__ import annotations

import argparse
import logging
import threading
from typing import Any, Mapping

from flask import Flask, Response, jsonify, request

from llmstxt.crawler import (
    CrawlConfig,
    CrawlOrchestrator,
    EventChannel,
    InvalidStartRequest,
    PageFetcher,
    RobotsCache,
    format_sse,
    load_config,
    prepare_job,
)


LOGGER = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _request_payload() -> dict[str, Any]:
    if request.method == "POST":
        body = request.get_json(silent=True)
        return dict(body) if isinstance(body, Mapping) else {}

    # Legacy query-string form: /api/crawl?url=...&testMode=true
    payload: dict[str, Any] = {
        "url": request.args.get("url"),
        "testMode": request.args.get("testMode", "false"),
    }
    if "pageBudget" in request.args:
        payload["pageBudget"] = request.args.get("pageBudget")
    return payload


def create_app(
    config: CrawlConfig | None = None,
    *,
    robots: RobotsCache | None = None,
    fetcher: PageFetcher | None = None,
    probe: bool = True,
) -> Flask:
    """Build the app. The robots cache and fetcher are shared by every job it runs."""

    cfg = config or CrawlConfig()
    app = Flask(__name__)
    app.config["CRAWL_CONFIG"] = cfg
    app.config["PROBE_START_URL"] = probe
    app.extensions["llmstxt.robots"] = robots or RobotsCache(cfg)
    app.extensions["llmstxt.fetcher"] = fetcher or PageFetcher(cfg)

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok"})

    @app.route("/api/crawl", methods=["GET", "POST"])
    def crawl():
        try:
            job = prepare_job(_request_payload(), cfg, probe=app.config["PROBE_START_URL"])
        except InvalidStartRequest as exc:
            LOGGER.info("Rejected crawl request: %s (%s)", exc.message, exc.details)
            return jsonify(exc.to_json()), 400

        cancel = threading.Event()
        channel = EventChannel(cancel)
        orchestrator = CrawlOrchestrator(
            cfg,
            fetcher=app.extensions["llmstxt.fetcher"],
            robots=app.extensions["llmstxt.robots"],
        )

        def run_job() -> None:
            try:
                orchestrator.run(job, cancel, channel.emit)
            except Exception:
                # error and complete events were already emitted by the orchestrator
                LOGGER.exception("Crawl job for %s failed", job.start_url)
            finally:
                channel.finish()

        worker = threading.Thread(target=run_job, name=f"crawl-{job.start_hostname}", daemon=True)
        worker.start()
        LOGGER.info("Streaming crawl of %s", job.start_url)

        def stream():
            finished = False
            try:
                for event in channel:
                    yield format_sse(event)
                finished = True
            finally:
                if not finished:
                    channel.disconnect()

        return Response(stream(), mimetype="text/event-stream", headers=SSE_HEADERS)

    return app


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the crawl progress stream over HTTP.")
    parser.add_argument("--host", type=str, default="127.0.0.1")
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("--config", type=str, default=None, help="Path to JSON/YAML crawl config.")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("selenium").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    config = load_config(args.config) if args.config else CrawlConfig()
    app = create_app(config)
    app.run(host=args.host, port=args.port, threaded=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
