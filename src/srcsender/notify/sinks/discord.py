"""
Discord webhook sink.

Posts composed embeds to Discord webhook URLs under the shared Discord rate
limiter. Only success, 404 and 429 are told apart; nothing is retried.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import aiohttp

from srcsender.config import DiscordConfig
from srcsender.connectors.limiter import TokenBucketLimiter
from srcsender.logging_config import redact_webhook_url
from srcsender.notify.sinks.base import DeliveryOutcome, DeliveryResult, DeliverySink

if TYPE_CHECKING:
    from srcsender.contracts.notifications import NotificationPayload

logger = logging.getLogger(__name__)


class DiscordWebhookSink(DeliverySink):
    """
    Discord delivery sink using webhook execute requests.

    One aiohttp session is shared by all destinations.
    """

    def __init__(
        self,
        config: DiscordConfig | None = None,
        limiter: TokenBucketLimiter | None = None,
    ) -> None:
        self._config = config or DiscordConfig()
        self._limiter = limiter or TokenBucketLimiter(self._config.rate_limit, name="discord")
        self._session: aiohttp.ClientSession | None = None

    @property
    def name(self) -> str:
        # Don't expose webhook URLs in name
        return "discord:webhook"

    @property
    def limiter(self) -> TokenBucketLimiter:
        return self._limiter

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def send(self, webhook_url: str, payload: NotificationPayload) -> DeliveryResult:
        """Send one embed to a Discord webhook."""
        webhook = redact_webhook_url(webhook_url)
        body = payload.to_json()
        headers = {"Content-Type": "application/json"}

        await self._limiter.acquire()
        try:
            session = await self._get_session()
            async with session.post(webhook_url, data=body, headers=headers) as resp:
                status = resp.status

                if 200 <= status < 300:
                    return DeliveryResult(
                        outcome=DeliveryOutcome.DELIVERED,
                        sink_name=self.name,
                        status_code=status,
                    )

                if status == 404:
                    logger.warning("Discord webhook not found", extra={"webhook": webhook})
                    return DeliveryResult(
                        outcome=DeliveryOutcome.GONE,
                        sink_name=self.name,
                        error="Webhook not found",
                        status_code=status,
                    )

                if status == 429:
                    retry_after = resp.headers.get("Retry-After", "")
                    try:
                        retry_after_s: float | None = float(retry_after)
                    except ValueError:
                        retry_after_s = None
                    logger.warning(
                        "Discord webhook over rate limit",
                        extra={"webhook": webhook, "retry_after": retry_after_s},
                    )
                    return DeliveryResult(
                        outcome=DeliveryOutcome.RATE_LIMITED,
                        sink_name=self.name,
                        error=f"Rate limited (retry_after={retry_after_s})",
                        status_code=status,
                        retry_after_s=retry_after_s,
                    )

                error_text = await resp.text(errors="replace")
                logger.error(
                    "Discord webhook send failed",
                    extra={"webhook": webhook, "status": status, "error": error_text[:200]},
                )
                return DeliveryResult(
                    outcome=DeliveryOutcome.FAILED,
                    sink_name=self.name,
                    error=f"HTTP {status}: {error_text[:200]}",
                    status_code=status,
                )

        except (aiohttp.ClientError, TimeoutError) as e:
            logger.error(
                "Discord webhook connection error",
                extra={"webhook": webhook, "error": str(e) or type(e).__name__},
            )
            return DeliveryResult(
                outcome=DeliveryOutcome.FAILED,
                sink_name=self.name,
                error=f"Connection error: {e}",
            )

    async def close(self) -> None:
        """Close aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
