"""
Service context.

Everything the pipeline shares across batches: the speedrun.com client, the
two independent rate limiters, the subscription store and the Discord sink.
Built once at startup by ``build_context`` and reused for every batch; the
limiters are the only state shared by concurrent tasks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from srcsender.config import SenderConfig
from srcsender.connectors.limiter import TokenBucketLimiter
from srcsender.connectors.speedrun import SpeedrunClient
from srcsender.notify.classifier import LeaderboardSource  # noqa: TC001
from srcsender.notify.sinks.base import DeliverySink  # noqa: TC001
from srcsender.notify.sinks.discord import DiscordWebhookSink
from srcsender.store.base import SubscriptionStore  # noqa: TC001
from srcsender.store.json_file import JsonFileSubscriptionStore
from srcsender.store.memory import InMemorySubscriptionStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """Process-wide collaborators for the notification pipeline."""

    leaderboards: LeaderboardSource
    store: SubscriptionStore
    sink: DeliverySink
    speedrun_limiter: TokenBucketLimiter | None = None
    discord_limiter: TokenBucketLimiter | None = None

    async def close(self) -> None:
        """Close network sessions and the store."""
        await self.sink.close()
        if isinstance(self.leaderboards, SpeedrunClient):
            await self.leaderboards.close()
        await self.store.close()


def build_store(config: SenderConfig) -> SubscriptionStore:
    if config.store.backend == "json":
        if config.store.path is None:
            raise ValueError("store.path is required for the json backend")
        return JsonFileSubscriptionStore(config.store.path)
    return InMemorySubscriptionStore()


def build_context(config: SenderConfig, store: SubscriptionStore | None = None) -> ServiceContext:
    """
    Construct the service context from configuration.

    Args:
        config: Sender configuration.
        store: Store override; defaults to the configured backend.
    """
    speedrun_limiter = TokenBucketLimiter(config.speedrun.rate_limit, name="speedrun")
    discord_limiter = TokenBucketLimiter(config.discord.rate_limit, name="discord")
    context = ServiceContext(
        leaderboards=SpeedrunClient(config.speedrun, limiter=speedrun_limiter),
        store=store if store is not None else build_store(config),
        sink=DiscordWebhookSink(config.discord, limiter=discord_limiter),
        speedrun_limiter=speedrun_limiter,
        discord_limiter=discord_limiter,
    )
    logger.info(
        "Service context ready",
        extra={
            "store": repr(context.store),
            "speedrun_limit": f"{config.speedrun.rate_limit.max_calls}/{config.speedrun.rate_limit.period_s}s",
            "discord_limit": f"{config.discord.rate_limit.max_calls}/{config.discord.rate_limit.period_s}s",
        },
    )
    return context
