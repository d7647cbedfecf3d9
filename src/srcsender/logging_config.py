"""
Structured logging configuration for srcsender.

Provides JSON-formatted structured logging with:
- Webhook token redaction (Discord webhook URLs are credentials)
- Security filtering (no secrets in extra fields)
- Bounded log lines (no raw payloads or long lists)

Usage:
    from srcsender.logging_config import setup_logging

    setup_logging()  # Call once at startup
    logger = logging.getLogger(__name__)
    logger.info("message", extra={"key": "value"})
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any

# Discord webhook URLs embed the token that authorises posting:
# https://discord.com/api/webhooks/<id>/<token>
_WEBHOOK_PATTERN = re.compile(
    r"(https?://(?:[\w-]+\.)?(?:discord|discordapp)\.com/api(?:/v\d+)?/webhooks/\d+)/[\w\-\.]+"
)
_SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # Bearer tokens
    (re.compile(r"\b(bearer|token)[=:\s]+['\"]?[\w\-\.]+['\"]?", re.I), "[TOKEN]"),
    # Authorization headers
    (re.compile(r"(authorization)[=:\s]+['\"]?[\w\-\.\s]+['\"]?", re.I), "[AUTH]"),
    # Database connection strings with credentials
    (re.compile(r"\b(mongodb(?:\+srv)?|postgres(?:ql)?)://[^\s\"'<>]+", re.I), "[DSN]"),
]

# Fields that should never appear in logs
BLOCKED_FIELDS: frozenset[str] = frozenset(
    {
        "secret",
        "token",
        "password",
        "authorization",
        "credential",
        "connection_string",
    }
)

# Fields replaced wholesale to keep log lines bounded
REDACTED_FIELDS: dict[str, str] = {
    "body": "[BODY]",
    "payload": "[PAYLOAD]",
    "embed": "[EMBED]",
}

# LogRecord attributes that are not user-supplied extra fields
_RECORD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


def redact_webhook_url(url: str) -> str:
    """
    Mask the token part of a Discord webhook URL.

    >>> redact_webhook_url("https://discord.com/api/webhooks/123/abc")
    'https://discord.com/api/webhooks/123/[TOKEN]'
    """
    return _WEBHOOK_PATTERN.sub(r"\1/[TOKEN]", url)


def _sanitize_text(text: str) -> str:
    """Remove webhook tokens and other credentials from free-form text."""
    if not text:
        return text

    result = redact_webhook_url(text)
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def _filter_log_record(record: dict[str, Any], *, _depth: int = 0) -> dict[str, Any]:
    """
    Filter sensitive and unbounded fields from extra log fields.

    Recursively filters nested dicts up to depth 3.
    """
    if _depth > 3:
        return {"_truncated": "max depth exceeded"}

    filtered: dict[str, Any] = {}

    for key, value in record.items():
        key_lower = key.lower()

        if any(blocked in key_lower for blocked in BLOCKED_FIELDS):
            continue

        if key_lower in REDACTED_FIELDS:
            filtered[key] = REDACTED_FIELDS[key_lower]
            continue

        if isinstance(value, (int, float, bool, type(None))):
            filtered[key] = value
        elif isinstance(value, str):
            filtered[key] = _sanitize_text(value)
        elif isinstance(value, (list, tuple)):
            if len(value) <= 10:
                filtered[key] = [
                    _sanitize_text(item) if isinstance(item, str) else item for item in value
                ]
            else:
                filtered[key] = f"[list:{len(value)} items]"
        elif isinstance(value, dict):
            filtered[key] = _filter_log_record(value, _depth=_depth + 1)
        else:
            filtered[key] = _sanitize_text(str(value))

    return filtered


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {key: value for key, value in record.__dict__.items() if key not in _RECORD_ATTRS}


class JsonFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.

    Output format:
    {"ts":"2024-01-01T00:00:00.000+00:00","level":"INFO","logger":"module","msg":"...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_dict: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": _sanitize_text(record.getMessage()),
        }

        if record.levelno >= logging.WARNING:
            log_dict["file"] = record.filename
            log_dict["line"] = record.lineno

        if record.exc_info:
            log_dict["exc"] = _sanitize_text(self.formatException(record.exc_info))

        extra = _extra_fields(record)
        if extra:
            log_dict.update(_filter_log_record(extra))

        return json.dumps(log_dict, default=str, ensure_ascii=False)


class SimpleFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname:8s} {record.name}: {_sanitize_text(record.getMessage())}"

        extra = _extra_fields(record)
        if extra:
            filtered = _filter_log_record(extra)
            if filtered:
                extra_str = " ".join(f"{k}={v}" for k, v in filtered.items())
                base = f"{base} | {extra_str}"

        if record.exc_info:
            base = f"{base}\n{_sanitize_text(self.formatException(record.exc_info))}"

        return base


def setup_logging(
    *,
    level: int | str = logging.INFO,
    json_format: bool = True,
    stream: Any = None,
) -> None:
    """
    Configure structured logging for the application.

    Call once at application startup.

    Args:
        level: Log level (default INFO).
        json_format: Use JSON formatter (default True for production).
        stream: Output stream (default stderr).
    """
    if stream is None:
        stream = sys.stderr

    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter() if json_format else SimpleFormatter())

    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers to avoid duplicates
    root.handlers.clear()
    root.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
