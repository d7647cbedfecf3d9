"""
Tests for the Discord webhook sink.

Uses mocked aiohttp sessions.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import orjson
import pytest

from srcsender.config import DiscordConfig, RateLimitConfig
from srcsender.contracts.notifications import EmbedField, NotificationPayload
from srcsender.notify.sinks.base import DeliveryOutcome
from srcsender.notify.sinks.discord import DiscordWebhookSink
from tests.fixtures.speedrun import WEBHOOK_A


@pytest.fixture
def sample_payload() -> NotificationPayload:
    return NotificationPayload(
        title="New run by Alice!",
        description="**Alice** submitted a new run in **Celeste**!",
        fields=[EmbedField(name="Time", value="2m 5s")],
    )


def make_sink(status: int, *, headers: dict[str, str] | None = None, text: str = "") -> tuple[
    DiscordWebhookSink, AsyncMock
]:
    sink = DiscordWebhookSink(DiscordConfig(rate_limit=RateLimitConfig(max_calls=100, period_s=1.0)))

    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.headers = headers or {}
    mock_response.text = AsyncMock(return_value=text)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    mock_session.post = MagicMock(return_value=mock_response)
    mock_session.closed = False

    sink._session = mock_session
    return sink, mock_session


class TestDiscordWebhookSink:
    """Tests for DiscordWebhookSink."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [200, 204])
    async def test_send_success(self, status: int, sample_payload: NotificationPayload) -> None:
        sink, session = make_sink(status)

        result = await sink.send(WEBHOOK_A, sample_payload)

        assert result.success is True
        assert result.outcome == DeliveryOutcome.DELIVERED
        session.post.assert_called_once()
        await sink.close()

    @pytest.mark.asyncio
    async def test_posts_wire_body(self, sample_payload: NotificationPayload) -> None:
        sink, session = make_sink(204)

        await sink.send(WEBHOOK_A, sample_payload)

        args, kwargs = session.post.call_args
        assert args[0] == WEBHOOK_A
        assert orjson.loads(kwargs["data"]) == sample_payload.to_wire()
        assert kwargs["headers"]["Content-Type"] == "application/json"
        await sink.close()

    @pytest.mark.asyncio
    async def test_not_found_is_gone(self, sample_payload: NotificationPayload) -> None:
        sink, _ = make_sink(404)

        result = await sink.send(WEBHOOK_A, sample_payload)

        assert result.outcome == DeliveryOutcome.GONE
        assert result.success is False
        assert result.status_code == 404
        await sink.close()

    @pytest.mark.asyncio
    async def test_rate_limited(self, sample_payload: NotificationPayload) -> None:
        sink, session = make_sink(429, headers={"Retry-After": "2.5"})

        result = await sink.send(WEBHOOK_A, sample_payload)

        assert result.outcome == DeliveryOutcome.RATE_LIMITED
        assert result.retry_after_s == 2.5
        # Not retried
        session.post.assert_called_once()
        await sink.close()

    @pytest.mark.asyncio
    async def test_rate_limited_without_retry_after(self, sample_payload: NotificationPayload) -> None:
        sink, _ = make_sink(429)

        result = await sink.send(WEBHOOK_A, sample_payload)

        assert result.outcome == DeliveryOutcome.RATE_LIMITED
        assert result.retry_after_s is None
        await sink.close()

    @pytest.mark.asyncio
    async def test_other_status_fails(self, sample_payload: NotificationPayload) -> None:
        sink, _ = make_sink(400, text='{"message": "Invalid Form Body"}')

        result = await sink.send(WEBHOOK_A, sample_payload)

        assert result.outcome == DeliveryOutcome.FAILED
        assert result.error is not None
        assert "400" in result.error
        await sink.close()

    @pytest.mark.asyncio
    async def test_connection_error_fails(self, sample_payload: NotificationPayload) -> None:
        sink, session = make_sink(200)
        session.post = MagicMock(side_effect=aiohttp.ClientConnectionError("reset"))

        result = await sink.send(WEBHOOK_A, sample_payload)

        assert result.outcome == DeliveryOutcome.FAILED
        assert result.error is not None
        assert "Connection error" in result.error
        await sink.close()

    @pytest.mark.asyncio
    async def test_undecodable_error_body_fails(self, sample_payload: NotificationPayload) -> None:
        sink, session = make_sink(500)
        response = session.post.return_value

        async def text(errors: str = "strict") -> str:
            if errors == "strict":
                raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")
            return "\ufffd"

        response.text = text

        result = await sink.send(WEBHOOK_A, sample_payload)

        assert result.outcome == DeliveryOutcome.FAILED
        assert result.error is not None
        assert "500" in result.error
        await sink.close()

    @pytest.mark.asyncio
    async def test_send_acquires_limiter(self, sample_payload: NotificationPayload) -> None:
        sink, _ = make_sink(204)

        await sink.send(WEBHOOK_A, sample_payload)
        await sink.send(WEBHOOK_A, sample_payload)

        assert sink.limiter.metrics.acquired == 2
        await sink.close()

    @pytest.mark.asyncio
    async def test_logs_redact_token(
        self, sample_payload: NotificationPayload, caplog: pytest.LogCaptureFixture
    ) -> None:
        sink, _ = make_sink(404)

        with caplog.at_level("WARNING"):
            await sink.send(WEBHOOK_A, sample_payload)

        record = caplog.records[-1]
        assert record.webhook == "https://discord.com/api/webhooks/111/[TOKEN]"
        await sink.close()

    def test_name_hides_url(self) -> None:
        assert DiscordWebhookSink().name == "discord:webhook"
