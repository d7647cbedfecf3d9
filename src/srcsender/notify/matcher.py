"""
Subscription matching.

Decides which subscriptions want a run and which participant triggered each
match. Matches are keyed by webhook URL, so a destination is notified at most
once per run however many of its rules fire.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from collections.abc import Iterable

    from srcsender.contracts.runs import RunRecord
    from srcsender.contracts.subscriptions import Subscription


@dataclass(frozen=True)
class MatchResult:
    """A subscription interested in a run, and the participant that triggered it."""

    subscription: Subscription
    participant_index: int
    rule: Literal["category", "participant"]

    @property
    def webhook_url(self) -> str:
        return self.subscription.webhook_url


def match_subscription(run: RunRecord, subscription: Subscription) -> MatchResult | None:
    """
    Match one subscription against a run.

    The category rule is tried first and credits the first participant, but
    only when that participant is a registered user (guest-led runs are not
    announced by category). The participant rule credits the first
    participant, in run order, that the subscription follows.
    """
    if not run.players:
        return None

    rules = subscription.records
    if run.category.id in rules.categories and run.players[0].names.international:
        return MatchResult(subscription=subscription, participant_index=0, rule="category")

    followed = set(rules.users)
    for index, player in enumerate(run.players):
        if player.id and player.id in followed:
            return MatchResult(subscription=subscription, participant_index=index, rule="participant")

    return None


def match_subscriptions(
    run: RunRecord,
    subscriptions: Iterable[Subscription],
) -> dict[str, MatchResult]:
    """
    Match every subscription against a run.

    Returns:
        Matches keyed by webhook URL. When several subscriptions share a URL
        the last match wins.
    """
    matches: dict[str, MatchResult] = {}
    for subscription in subscriptions:
        result = match_subscription(run, subscription)
        if result is not None:
            matches[result.webhook_url] = result
    return matches
