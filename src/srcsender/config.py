"""
Sender configuration.

Dataclass configs validated at construction time. Values that normally come
from the deployment environment fall back to environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

PORT_ENV = "FUNCTIONS_CUSTOMHANDLER_PORT"
STORE_PATH_ENV = "SRC_WEBHOOK_STORE_PATH"


@dataclass
class RateLimitConfig:
    """
    Token-bucket parameters: at most ``max_calls`` per ``period_s``.

    The bucket starts full, so ``max_calls`` is also the burst size.
    """

    max_calls: int = 5
    period_s: float = 3.0

    def __post_init__(self) -> None:
        if self.max_calls < 1:
            raise ValueError(f"max_calls must be >= 1, got {self.max_calls}")
        if self.period_s <= 0:
            raise ValueError(f"period_s must be > 0, got {self.period_s}")

    @property
    def rate_per_s(self) -> float:
        return self.max_calls / self.period_s


@dataclass
class SpeedrunApiConfig:
    """speedrun.com REST API client configuration."""

    base_url: str = "https://www.speedrun.com/api/v1"
    timeout_s: float = 10.0
    user_agent: str = "SRCStats Webhook"
    rate_limit: RateLimitConfig = field(
        default_factory=lambda: RateLimitConfig(max_calls=33, period_s=60.0)
    )

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0, got {self.timeout_s}")


@dataclass
class DiscordConfig:
    """Discord webhook delivery configuration."""

    timeout_s: float = 10.0
    rate_limit: RateLimitConfig = field(
        default_factory=lambda: RateLimitConfig(max_calls=5, period_s=3.0)
    )
    embed_color: int = 15899392

    def __post_init__(self) -> None:
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0, got {self.timeout_s}")
        if not 0 <= self.embed_color <= 0xFFFFFF:
            raise ValueError(f"embed_color must be a 24-bit RGB value, got {self.embed_color}")


@dataclass
class StoreConfig:
    """Subscription store selection."""

    backend: Literal["memory", "json"] = "memory"
    path: Path | None = None  # From SRC_WEBHOOK_STORE_PATH env var

    def __post_init__(self) -> None:
        if self.backend not in ("memory", "json"):
            raise ValueError(f"Unknown store backend: {self.backend!r}")
        if self.backend == "json":
            if self.path is None:
                env_path = os.environ.get(STORE_PATH_ENV, "")
                if env_path:
                    self.path = Path(env_path)
            if self.path is None:
                raise ValueError(f"{STORE_PATH_ENV} required when json store selected")


@dataclass
class ServerConfig:
    """Inbound HTTP listener configuration."""

    host: str = "0.0.0.0"
    port: int = 0  # 0 = from FUNCTIONS_CUSTOMHANDLER_PORT, else 8080

    def __post_init__(self) -> None:
        if self.port == 0:
            self.port = int(os.environ.get(PORT_ENV, "8080"))
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be 1..65535, got {self.port}")


@dataclass
class SenderConfig:
    """Top-level configuration, constructed once at startup."""

    speedrun: SpeedrunApiConfig = field(default_factory=SpeedrunApiConfig)
    discord: DiscordConfig = field(default_factory=DiscordConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_env(cls) -> SenderConfig:
        """Build config, selecting the json store when a store path is set."""
        store_path = os.environ.get(STORE_PATH_ENV, "")
        store = StoreConfig(backend="json", path=Path(store_path)) if store_path else StoreConfig()
        return cls(store=store)
