"""
Tests for subscription matching.
"""

from __future__ import annotations

from srcsender.notify.matcher import match_subscription, match_subscriptions
from tests.fixtures.speedrun import (
    WEBHOOK_A,
    WEBHOOK_B,
    make_guest,
    make_player,
    make_run,
    make_subscription,
)


class TestMatchSubscription:
    """Tests for single-subscription matching."""

    def test_category_rule_credits_first_participant(self) -> None:
        run = make_run(category_id="cat1", players=[make_player("u1"), make_player("u2", "Bea")])
        result = match_subscription(run, make_subscription(categories=["cat1"]))

        assert result is not None
        assert result.rule == "category"
        assert result.participant_index == 0

    def test_category_rule_skips_guest_led_runs(self) -> None:
        run = make_run(category_id="cat1", players=[make_guest("Anon"), make_player("u2")])
        assert match_subscription(run, make_subscription(categories=["cat1"])) is None

    def test_participant_rule_credits_position(self) -> None:
        run = make_run(players=[make_player("u1"), make_guest(), make_player("u3", "Cy")])
        result = match_subscription(run, make_subscription(users=["u3"]))

        assert result is not None
        assert result.rule == "participant"
        assert result.participant_index == 2

    def test_participant_rule_first_in_run_order(self) -> None:
        run = make_run(players=[make_player("u1"), make_player("u2", "Bea")])
        result = match_subscription(run, make_subscription(users=["u2", "u1"]))

        assert result is not None
        assert result.participant_index == 0

    def test_category_rule_checked_first(self) -> None:
        run = make_run(category_id="cat1", players=[make_player("u1"), make_player("u2", "Bea")])
        result = match_subscription(run, make_subscription(categories=["cat1"], users=["u2"]))

        assert result is not None
        assert result.rule == "category"
        assert result.participant_index == 0

    def test_guest_led_run_falls_back_to_participant_rule(self) -> None:
        run = make_run(category_id="cat1", players=[make_guest(), make_player("u2", "Bea")])
        result = match_subscription(run, make_subscription(categories=["cat1"], users=["u2"]))

        assert result is not None
        assert result.participant_index == 1

    def test_no_players_never_matches(self) -> None:
        run = make_run(category_id="cat1", players=[])
        assert match_subscription(run, make_subscription(categories=["cat1"])) is None

    def test_no_rule_matches(self) -> None:
        run = make_run(category_id="cat1")
        assert match_subscription(run, make_subscription(categories=["other"], users=["nobody"])) is None


class TestMatchSubscriptions:
    """Tests for matching a run against all subscriptions."""

    def test_keyed_by_destination(self) -> None:
        run = make_run(category_id="cat1", players=[make_player("u1")])
        matches = match_subscriptions(
            run,
            [
                make_subscription(WEBHOOK_A, categories=["cat1"]),
                make_subscription(WEBHOOK_B, users=["u1"]),
            ],
        )

        assert set(matches) == {WEBHOOK_A, WEBHOOK_B}

    def test_one_match_per_destination(self) -> None:
        """Category and participant subscriptions on the same URL yield one match."""
        run = make_run(category_id="cat1", players=[make_player("u1"), make_player("u2", "Bea")])
        matches = match_subscriptions(
            run,
            [
                make_subscription(WEBHOOK_A, categories=["cat1"]),
                make_subscription(WEBHOOK_A, users=["u2"]),
            ],
        )

        assert list(matches) == [WEBHOOK_A]
        # Last match wins
        assert matches[WEBHOOK_A].participant_index == 1

    def test_no_subscriptions(self) -> None:
        assert match_subscriptions(make_run(), []) == {}
