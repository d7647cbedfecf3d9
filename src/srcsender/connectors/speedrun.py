"""
speedrun.com REST client for rank lookups.

Both lookups are best-effort: transport errors, error statuses and malformed
bodies are logged and reported as an empty list, never raised. Every request
passes through the shared speedrun.com rate limiter.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import aiohttp
from pydantic import ValidationError

from srcsender.config import SpeedrunApiConfig
from srcsender.connectors.limiter import TokenBucketLimiter
from srcsender.contracts.ranking import RankedRun

logger = logging.getLogger(__name__)


@dataclass
class SpeedrunClientMetrics:
    """Counters for upstream lookups."""

    requests: int = 0
    succeeded: int = 0
    failed: int = 0


def parse_ranked_runs(entries: Any) -> list[RankedRun]:
    """
    Extract ``(place, run id)`` pairs from leaderboard or personal-best entries.

    Entries look like ``{"place": 1, "run": {"id": "..."}}``. Malformed entries
    are skipped.
    """
    if not isinstance(entries, list):
        return []

    ranked: list[RankedRun] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        run = entry.get("run")
        if not isinstance(run, dict):
            continue
        try:
            ranked.append(RankedRun(place=int(entry.get("place", 0)), run_id=str(run.get("id", ""))))
        except (TypeError, ValueError, ValidationError):
            continue
    return ranked


class SpeedrunClient:
    """
    Async client for the speedrun.com v1 API.

    Only the two ranking lookups the notifier needs are implemented.
    """

    def __init__(
        self,
        config: SpeedrunApiConfig | None = None,
        limiter: TokenBucketLimiter | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            config: API configuration.
            limiter: Shared limiter for speedrun.com calls. Defaults to one
                built from ``config.rate_limit``.
        """
        self._config = config or SpeedrunApiConfig()
        self._limiter = limiter or TokenBucketLimiter(self._config.rate_limit, name="speedrun")
        self._session: aiohttp.ClientSession | None = None
        self.metrics = SpeedrunClientMetrics()

    @property
    def limiter(self) -> TokenBucketLimiter:
        return self._limiter

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.timeout_s)
            self._session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"User-Agent": self._config.user_agent},
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _get_json(self, path: str, params: dict[str, str] | None = None) -> Any | None:
        """
        GET an API path, returning the decoded body or None on any failure.

        A ``vary`` parameter defeats the API's response cache so freshly
        verified runs show up in the lookup.
        """
        url = f"{self._config.base_url}{path}"
        query = dict(params or {})
        query["vary"] = str(time.time_ns())

        await self._limiter.acquire()
        self.metrics.requests += 1
        try:
            session = await self._get_session()
            async with session.get(url, params=query) as response:
                if response.status >= 400:
                    self.metrics.failed += 1
                    logger.warning(
                        "speedrun.com lookup failed",
                        extra={"status": response.status, "endpoint": path},
                    )
                    return None
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            self.metrics.failed += 1
            logger.warning(
                "speedrun.com request error",
                extra={"error": str(e) or type(e).__name__, "endpoint": path},
            )
            return None

        self.metrics.succeeded += 1
        return data

    async def leaderboard_for(
        self,
        game_id: str,
        category_id: str,
        level_id: str | None = None,
        variables: dict[str, str] | None = None,
    ) -> list[RankedRun]:
        """
        Ranked runs on a category or level leaderboard.

        Args:
            game_id: Game id.
            category_id: Category id.
            level_id: Level id for individual-level boards.
            variables: Subcategory filters (variable id -> choice id).

        Returns:
            Leaderboard entries in board order; empty on failure.
        """
        if level_id:
            path = f"/leaderboards/{game_id}/level/{level_id}/{category_id}"
        else:
            path = f"/leaderboards/{game_id}/category/{category_id}"
        params = {f"var-{var_id}": choice_id for var_id, choice_id in (variables or {}).items()}

        data = await self._get_json(path, params)
        if not isinstance(data, dict):
            return []
        board = data.get("data")
        if not isinstance(board, dict):
            return []
        return parse_ranked_runs(board.get("runs"))

    async def personal_bests_for(self, user_id: str, game_id: str) -> list[RankedRun]:
        """
        A user's personal bests in one game.

        Returns:
            Personal-best entries with their current leaderboard place; empty
            on failure.
        """
        data = await self._get_json(f"/users/{user_id}/personal-bests", {"game": game_id})
        if not isinstance(data, dict):
            return []
        return parse_ranked_runs(data.get("data"))
