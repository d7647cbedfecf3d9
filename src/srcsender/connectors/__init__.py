"""Connectors for external services: speedrun.com lookups and rate limiting."""

from srcsender.connectors.limiter import LimiterMetrics, TokenBucketLimiter
from srcsender.connectors.speedrun import (
    SpeedrunClient,
    SpeedrunClientMetrics,
    parse_ranked_runs,
)

__all__ = [
    "LimiterMetrics",
    "SpeedrunClient",
    "SpeedrunClientMetrics",
    "TokenBucketLimiter",
    "parse_ranked_runs",
]
