"""
Test fixtures for speedrun.com runs, subscriptions and fake collaborators.

Run payloads follow the shape speedrun.com embeds into webhook batches
(``?embed=game,category.variables,level,players``).
"""

from __future__ import annotations

import asyncio
from typing import Any

from srcsender.contracts.notifications import NotificationPayload
from srcsender.contracts.ranking import RankedRun
from srcsender.contracts.runs import RunRecord
from srcsender.contracts.subscriptions import EventScope, RecordRules, Subscription
from srcsender.notify.sinks.base import DeliveryOutcome, DeliveryResult, DeliverySink

WEBHOOK_A = "https://discord.com/api/webhooks/111/token-a"
WEBHOOK_B = "https://discord.com/api/webhooks/222/token-b"


def make_player(user_id: str = "u1", name: str = "Alice") -> dict[str, Any]:
    """Registered user participant."""
    return {
        "rel": "user",
        "id": user_id,
        "names": {"international": name, "japanese": None},
        "weblink": f"https://www.speedrun.com/user/{name}",
        "assets": {"image": {"uri": f"https://www.speedrun.com/userasset/{user_id}/image"}},
    }


def make_guest(name: str = "Guest") -> dict[str, Any]:
    return {"rel": "guest", "name": name}


def make_variable(
    var_id: str,
    name: str,
    choices: dict[str, str],
    *,
    is_subcategory: bool = False,
) -> dict[str, Any]:
    return {
        "id": var_id,
        "name": name,
        "is-subcategory": is_subcategory,
        "values": {"values": {cid: {"label": label, "rules": None} for cid, label in choices.items()}},
    }


def make_run_payload(
    run_id: str = "run1",
    *,
    status: str = "verified",
    game_id: str = "game1",
    game_name: str = "Celeste",
    category_id: str = "cat1",
    category_name: str = "Any%",
    level: dict[str, Any] | None = None,
    players: list[dict[str, Any]] | None = None,
    variables: list[dict[str, Any]] | None = None,
    values: dict[str, str] | None = None,
    primary_t: float = 125.25,
    trophies: dict[str, str] | None = None,
) -> dict[str, Any]:
    """A run object as embedded in a webhook batch."""
    assets: dict[str, Any] = {"logo": {"uri": "https://www.speedrun.com/logo.png"}}
    for key, uri in (trophies or {}).items():
        assets[key] = {"uri": uri}
    return {
        "id": run_id,
        "weblink": f"https://www.speedrun.com/run/{run_id}",
        "game": {"data": {"id": game_id, "names": {"international": game_name}, "assets": assets}},
        "level": {"data": level if level is not None else []},
        "category": {
            "data": {
                "id": category_id,
                "name": category_name,
                "variables": {"data": variables or []},
            }
        },
        "values": values or {},
        "times": {"primary_t": primary_t},
        "status": {"status": status, "examiner": "mod1"},
        "players": {"data": players if players is not None else [make_player()]},
    }


def make_run(run_id: str = "run1", **kwargs: Any) -> RunRecord:
    return RunRecord.model_validate(make_run_payload(run_id, **kwargs))


def make_subscription(
    webhook_url: str = WEBHOOK_A,
    *,
    categories: list[str] | None = None,
    users: list[str] | None = None,
    events: EventScope = EventScope.ALL,
) -> Subscription:
    return Subscription(
        webhook_url=webhook_url,
        records=RecordRules(categories=categories or [], users=users or [], events=events),
    )


class FakeLeaderboardSource:
    """
    In-memory ranking lookups that count calls.

    ``delay_s`` makes each lookup yield to the loop so concurrent callers
    overlap.
    """

    def __init__(
        self,
        *,
        personal_bests: dict[str, list[RankedRun]] | None = None,
        leaderboard: list[RankedRun] | None = None,
        error: Exception | None = None,
        delay_s: float = 0.0,
    ) -> None:
        self.personal_bests = personal_bests or {}
        self.leaderboard = leaderboard or []
        self.error = error
        self.delay_s = delay_s
        self.personal_best_calls: list[tuple[str, str]] = []
        self.leaderboard_calls: list[tuple[str, str, str | None, dict[str, str]]] = []

    async def leaderboard_for(
        self,
        game_id: str,
        category_id: str,
        level_id: str | None = None,
        variables: dict[str, str] | None = None,
    ) -> list[RankedRun]:
        self.leaderboard_calls.append((game_id, category_id, level_id, dict(variables or {})))
        await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return list(self.leaderboard)

    async def personal_bests_for(self, user_id: str, game_id: str) -> list[RankedRun]:
        self.personal_best_calls.append((user_id, game_id))
        await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return list(self.personal_bests.get(user_id, []))


class RecordingSink(DeliverySink):
    """Sink that records sends and answers with a per-URL outcome."""

    def __init__(self, outcomes: dict[str, DeliveryOutcome] | None = None) -> None:
        self.outcomes = outcomes or {}
        self.sent: list[tuple[str, NotificationPayload]] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "recording"

    async def send(self, webhook_url: str, payload: NotificationPayload) -> DeliveryResult:
        self.sent.append((webhook_url, payload))
        await asyncio.sleep(0)
        outcome = self.outcomes.get(webhook_url, DeliveryOutcome.DELIVERED)
        return DeliveryResult(outcome=outcome, sink_name=self.name)

    async def close(self) -> None:
        self.closed = True

    def urls(self) -> list[str]:
        return [url for url, _ in self.sent]
