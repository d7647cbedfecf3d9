"""
Run classification: ordinary run, personal best or world record.

A classifier instance lives for one batch. Lookups are memoised with
single-flight semantics: concurrent deliveries triggered by the same
participant of the same run share one upstream query.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

from srcsender.contracts.ranking import RankClassification, RankedRun

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from srcsender.contracts.runs import RunRecord

logger = logging.getLogger(__name__)


class LeaderboardSource(Protocol):
    """Ranking lookups the classifier depends on (see ``SpeedrunClient``)."""

    async def leaderboard_for(
        self,
        game_id: str,
        category_id: str,
        level_id: str | None = None,
        variables: dict[str, str] | None = None,
    ) -> list[RankedRun]: ...

    async def personal_bests_for(self, user_id: str, game_id: str) -> list[RankedRun]: ...


def find_place(ranked: Sequence[RankedRun], run_id: str) -> int | None:
    """Place of a run in a ranked list, or None if absent or unplaced."""
    for entry in ranked:
        if entry.run_id == run_id:
            return entry.place if entry.place >= 1 else None
    return None


class EventClassifier:
    """
    Classifies runs for the participant that triggered a notification.

    Order of lookups:
    1. The participant's personal bests in the run's game. A hit means the run
       is their personal best at that place (world record at place 1).
    2. The run's canonical leaderboard (level board for IL runs, filtered by
       the run's subcategory choices). A hit classifies the same way.
    3. Otherwise the run is ordinary and unranked.

    Upstream failures degrade to "ordinary" and are never raised.
    """

    def __init__(self, source: LeaderboardSource) -> None:
        self._source = source
        self._classifications: dict[tuple[str, int], asyncio.Task[RankClassification]] = {}
        self._leaderboards: dict[str, asyncio.Task[list[RankedRun]]] = {}

    async def classify(self, run: RunRecord, participant_index: int) -> RankClassification:
        """Classify a run for one participant, reusing any earlier or in-flight result."""
        task = self._single_flight(
            self._classifications,
            (run.id, participant_index),
            lambda: self._classify(run, participant_index),
        )
        return await asyncio.shield(task)

    @staticmethod
    def _single_flight(cache: dict, key: object, factory: Callable[[], Awaitable]) -> asyncio.Task:
        task = cache.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            cache[key] = task
        return task

    async def _classify(self, run: RunRecord, participant_index: int) -> RankClassification:
        try:
            player = run.players[participant_index]
            if player.id:
                personal_bests = await self._source.personal_bests_for(player.id, run.game.id)
                place = find_place(personal_bests, run.id)
                if place is not None:
                    return RankClassification.from_place(place)

            board = await asyncio.shield(
                self._single_flight(self._leaderboards, run.id, lambda: self._leaderboard(run))
            )
            place = find_place(board, run.id)
            if place is not None:
                return RankClassification.from_place(place)
        except Exception as e:
            logger.warning(
                "Classification failed, treating run as unranked",
                extra={"run_id": run.id, "error": str(e) or type(e).__name__},
            )
        return RankClassification.ordinary()

    async def _leaderboard(self, run: RunRecord) -> list[RankedRun]:
        return await self._source.leaderboard_for(
            run.game.id,
            run.category.id,
            level_id=run.level.id if run.level else None,
            variables=run.subcategory_values(),
        )
