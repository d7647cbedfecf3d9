"""
Inbound HTTP server.

Routes:
- POST /api/SendWebhook: process a batch of runs, respond once all
  deliveries have completed
- GET /healthz: pipeline and limiter status (JSON)
- GET /metrics: Prometheus exposition
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import orjson
from aiohttp import web
from prometheus_client import generate_latest

from srcsender.contracts.runs import BatchParseError, parse_batch
from srcsender.metrics import MetricsExporter
from srcsender.store.base import StoreUnavailableError

if TYPE_CHECKING:
    from srcsender.connectors.limiter import TokenBucketLimiter
    from srcsender.notify.pipeline import NotificationPipeline

logger = logging.getLogger(__name__)

SEND_WEBHOOK_PATH = "/api/SendWebhook"

# Type alias for aiohttp handler
_Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _json_response(data: dict[str, Any], status: int = 200) -> web.Response:
    return web.Response(body=orjson.dumps(data), status=status, content_type="application/json")


def _make_send_webhook_handler(pipeline: NotificationPipeline) -> _Handler:
    """Create POST /api/SendWebhook handler bound to a pipeline."""

    async def handler(request: web.Request) -> web.Response:
        body = await request.read()
        try:
            runs = parse_batch(body)
        except BatchParseError as e:
            logger.warning("Rejected malformed batch", extra={"error": str(e)[:200]})
            return _json_response({"status": "error", "error": str(e)}, status=400)

        try:
            report = await pipeline.process_batch(runs)
        except StoreUnavailableError:
            return _json_response(
                {"status": "error", "error": "subscription store unavailable"},
                status=503,
            )

        return _json_response({"status": "ok", **report.to_dict()})

    return handler


def _limiters(pipeline: NotificationPipeline) -> list[TokenBucketLimiter]:
    context = pipeline.context
    return [limiter for limiter in (context.speedrun_limiter, context.discord_limiter) if limiter]


def _make_healthz_handler(pipeline: NotificationPipeline) -> _Handler:
    """Create GET /healthz handler."""

    async def handler(request: web.Request) -> web.Response:
        metrics = pipeline.metrics
        return _json_response(
            {
                "status": "ok",
                "batches": metrics.batches,
                "batches_failed": metrics.batches_failed,
                "deliveries": dict(metrics.deliveries),
                "limiters": [limiter.get_status() for limiter in _limiters(pipeline)],
            }
        )

    return handler


def _make_metrics_handler(pipeline: NotificationPipeline, exporter: MetricsExporter) -> _Handler:
    """Create GET /metrics handler; syncs component counters on every scrape."""

    async def handler(request: web.Request) -> web.Response:
        client_metrics = getattr(pipeline.context.leaderboards, "metrics", None)
        exporter.update(
            pipeline_metrics=pipeline.metrics,
            client_metrics=client_metrics,
            limiters=_limiters(pipeline),
        )
        return web.Response(
            body=generate_latest(exporter.registry),
            content_type="text/plain; version=0.0.4",
            charset="utf-8",
        )

    return handler


def create_app(
    pipeline: NotificationPipeline,
    *,
    exporter: MetricsExporter | None = None,
    close_context: bool = True,
) -> web.Application:
    """
    Create the aiohttp Application.

    Args:
        pipeline: Pipeline that processes inbound batches.
        exporter: Metrics exporter for /metrics (default: private registry).
        close_context: Close the pipeline's service context on app cleanup.

    Returns:
        aiohttp.web.Application ready to be started.
    """
    exporter = exporter or MetricsExporter()

    app = web.Application()
    app.router.add_post(SEND_WEBHOOK_PATH, _make_send_webhook_handler(pipeline))
    app.router.add_get("/healthz", _make_healthz_handler(pipeline))
    app.router.add_get("/metrics", _make_metrics_handler(pipeline, exporter))

    if close_context:

        async def _close_context(app: web.Application) -> None:
            await pipeline.context.close()

        app.on_cleanup.append(_close_context)

    return app


async def start_server(app: web.Application, host: str = "0.0.0.0", port: int = 8080) -> web.AppRunner:
    """
    Start serving an application.

    Returns:
        AppRunner (call ``stop_server(runner)`` on shutdown).
    """
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("Server started on http://%s:%d%s", host, port, SEND_WEBHOOK_PATH)
    return runner


async def stop_server(runner: web.AppRunner) -> None:
    await runner.cleanup()
    logger.info("Server stopped")
