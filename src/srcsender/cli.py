"""
srcsender command line.

Usage:
    srcsender serve [--host HOST] [--port PORT] [--store PATH]
    srcsender send BATCH.json [--store PATH]
    srcsender subscribe WEBHOOK_URL --store PATH [--category ID ...] [--user ID ...] [--pb-only]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

import orjson

from srcsender.config import SenderConfig, ServerConfig, StoreConfig
from srcsender.contracts.runs import BatchParseError, parse_batch
from srcsender.contracts.subscriptions import EventScope, RecordRules, Subscription
from srcsender.logging_config import redact_webhook_url, setup_logging
from srcsender.notify.composer import NotificationComposer
from srcsender.notify.context import build_context
from srcsender.notify.pipeline import NotificationPipeline
from srcsender.server import create_app, start_server, stop_server
from srcsender.store.base import StoreUnavailableError
from srcsender.store.json_file import JsonFileSubscriptionStore

logger = logging.getLogger(__name__)


def build_config(args: argparse.Namespace) -> SenderConfig:
    """Environment config with command-line overrides applied."""
    config = SenderConfig.from_env()
    store_path = getattr(args, "store", None)
    if store_path is not None:
        config.store = StoreConfig(backend="json", path=store_path)
    host = getattr(args, "host", None)
    port = getattr(args, "port", None)
    if host is not None or port is not None:
        config.server = ServerConfig(
            host=host if host is not None else config.server.host,
            port=port if port is not None else config.server.port,
        )
    return config


def build_pipeline(config: SenderConfig) -> NotificationPipeline:
    context = build_context(config)
    return NotificationPipeline(context, NotificationComposer(config.discord.embed_color))


async def run_serve(config: SenderConfig) -> int:
    """Serve until SIGINT/SIGTERM."""
    pipeline = build_pipeline(config)
    app = create_app(pipeline)
    runner = await start_server(app, host=config.server.host, port=config.server.port)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def signal_handler(sig: int, frame: object) -> None:
        logger.info("Received signal %s, initiating shutdown", signal.Signals(sig).name)
        loop.call_soon_threadsafe(stop_event.set)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        await stop_event.wait()
        return 0
    finally:
        # App cleanup closes the service context
        await stop_server(runner)


async def run_send(config: SenderConfig, batch_path: Path) -> int:
    """Process one batch file, as if it had been posted to the server."""
    try:
        runs = parse_batch(batch_path.read_bytes())
    except OSError as e:
        logger.error("Cannot read batch file", extra={"path": str(batch_path), "error": str(e)})
        return 2
    except BatchParseError as e:
        logger.error("Malformed batch", extra={"path": str(batch_path), "error": str(e)[:200]})
        return 2

    pipeline = build_pipeline(config)
    try:
        report = await pipeline.process_batch(runs)
    except StoreUnavailableError:
        return 1
    finally:
        await pipeline.context.close()

    sys.stdout.write(orjson.dumps(report.to_dict()).decode() + "\n")
    return 0


async def run_subscribe(args: argparse.Namespace) -> int:
    """Register or replace a subscription in a JSON store file."""
    subscription = Subscription(
        webhook_url=args.webhook_url,
        records=RecordRules(
            categories=args.category,
            users=args.user,
            events=EventScope.PB if args.pb_only else EventScope.ALL,
        ),
    )
    store = JsonFileSubscriptionStore(args.store)
    try:
        await store.save_subscription(subscription)
    except StoreUnavailableError as e:
        logger.error("Cannot save subscription", extra={"error": str(e)})
        return 1
    finally:
        await store.close()

    logger.info(
        "Subscription saved",
        extra={"webhook": redact_webhook_url(subscription.webhook_url), "store": str(args.store)},
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="srcsender",
        description="Notify Discord webhooks about verified speedrun.com runs.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines (default: human-readable)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the inbound HTTP listener")
    serve.add_argument("--host", type=str, default=None, help="Bind address (default: 0.0.0.0)")
    serve.add_argument(
        "--port",
        type=int,
        default=None,
        help="Bind port (default: $FUNCTIONS_CUSTOMHANDLER_PORT or 8080)",
    )
    serve.add_argument("--store", type=Path, default=None, help="JSON subscription store file")

    send = subparsers.add_parser("send", help="Process a batch of runs from a JSON file")
    send.add_argument("batch", type=Path, help="JSON array of runs or {\"data\": [...]} envelope")
    send.add_argument("--store", type=Path, default=None, help="JSON subscription store file")

    subscribe = subparsers.add_parser("subscribe", help="Add a subscription to a JSON store file")
    subscribe.add_argument("webhook_url", type=str, help="Discord webhook URL")
    subscribe.add_argument("--store", type=Path, required=True, help="JSON subscription store file")
    subscribe.add_argument(
        "--category", action="append", default=[], help="Category id to follow (repeatable)"
    )
    subscribe.add_argument("--user", action="append", default=[], help="User id to follow (repeatable)")
    subscribe.add_argument(
        "--pb-only",
        action="store_true",
        help="Only notify personal bests and world records",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_format=args.json_logs,
    )

    if args.command == "subscribe":
        return asyncio.run(run_subscribe(args))

    try:
        config = build_config(args)
    except ValueError as e:
        logger.error("Invalid configuration", extra={"error": str(e)})
        return 2

    if args.command == "serve":
        return asyncio.run(run_serve(config))
    return asyncio.run(run_send(config, args.batch))


if __name__ == "__main__":
    sys.exit(main())
