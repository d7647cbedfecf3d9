"""
Tests for run contracts and batch parsing.
"""

from __future__ import annotations

import orjson
import pytest
from pydantic import ValidationError

from srcsender.contracts.runs import BatchParseError, RunRecord, RunStatus, parse_batch
from tests.fixtures.speedrun import (
    make_guest,
    make_player,
    make_run,
    make_run_payload,
    make_variable,
)


class TestRunRecord:
    """Tests for RunRecord parsing."""

    def test_unwraps_embedded_resources(self) -> None:
        """Embedded game, category and players are unwrapped from data envelopes."""
        run = make_run("r1", game_name="Celeste", category_name="Any%")

        assert run.id == "r1"
        assert run.game.name == "Celeste"
        assert run.category.name == "Any%"
        assert run.status == RunStatus.VERIFIED
        assert run.players[0].display_name == "Alice"
        assert run.players[0].image_uri.endswith("/image")

    def test_full_game_run_has_no_level(self) -> None:
        run = make_run()
        assert run.level is None

    def test_individual_level_run(self) -> None:
        run = make_run(level={"id": "lvl1", "name": "Forsaken City"})
        assert run.level is not None
        assert run.level.name == "Forsaken City"

    def test_guest_player(self) -> None:
        run = make_run(players=[make_guest("Bob")])
        player = run.players[0]

        assert player.is_guest
        assert player.display_name == "Bob"
        assert player.names.international == ""

    def test_registered_name_overrides_guest_name(self) -> None:
        payload = make_player("u9", "Registered")
        payload["name"] = "guestname"
        run = make_run(players=[payload])

        assert run.players[0].display_name == "Registered"

    def test_trophy_assets(self) -> None:
        run = make_run(trophies={"trophy-1st": "https://cdn/1.png", "trophy-4th": "https://cdn/4.png"})

        assert run.game.assets.trophy_for(1) == "https://cdn/1.png"
        assert run.game.assets.trophy_for(2) == ""
        assert run.game.assets.trophy_for(4) == "https://cdn/4.png"
        assert run.game.assets.trophy_for(5) == ""

    def test_is_frozen(self) -> None:
        run = make_run()
        with pytest.raises(ValidationError):
            run.id = "other"  # type: ignore[misc]

    def test_from_json(self) -> None:
        run = RunRecord.from_json(orjson.dumps(make_run_payload("abc")))
        assert run.id == "abc"

    def test_missing_id_rejected(self) -> None:
        payload = make_run_payload()
        payload["id"] = ""
        with pytest.raises(ValueError):
            RunRecord.model_validate(payload)


class TestVariableResolution:
    """Tests for chosen-variable resolution."""

    def test_resolves_in_declaration_order(self) -> None:
        """Resolved variables follow the category's declaration order, not the run's."""
        run = make_run(
            variables=[
                make_variable("v1", "Platform", {"pc": "PC"}),
                make_variable("v2", "Glitches", {"nmg": "No Major Glitches"}, is_subcategory=True),
            ],
            values={"v2": "nmg", "v1": "pc"},
        )

        resolved = [(variable.id, label) for variable, label in run.resolved_variables()]
        assert resolved == [("v1", "PC"), ("v2", "No Major Glitches")]

    def test_unknown_variable_and_choice_skipped(self) -> None:
        run = make_run(
            variables=[make_variable("v1", "Platform", {"pc": "PC"})],
            values={"v1": "legacy-choice", "gone": "x"},
        )

        assert run.resolved_variables() == []

    def test_choices_shape_accepted(self) -> None:
        """Variables reporting values.choices (id -> label) resolve too."""
        variable = {
            "id": "v1",
            "name": "Difficulty",
            "is-subcategory": True,
            "values": {"choices": {"hard": "Hard"}},
        }
        run = make_run(variables=[variable], values={"v1": "hard"})

        assert run.subcategory_values() == {"v1": "hard"}

    def test_subcategory_values_excludes_plain_variables(self) -> None:
        run = make_run(
            variables=[
                make_variable("v1", "Platform", {"pc": "PC"}),
                make_variable("v2", "Route", {"a": "A"}, is_subcategory=True),
            ],
            values={"v1": "pc", "v2": "a"},
        )

        assert run.subcategory_values() == {"v2": "a"}


class TestParseBatch:
    """Tests for inbound batch decoding."""

    def test_bare_array(self) -> None:
        body = orjson.dumps([make_run_payload("a"), make_run_payload("b")])
        runs = parse_batch(body)
        assert [run.id for run in runs] == ["a", "b"]

    def test_data_envelope(self) -> None:
        body = orjson.dumps({"data": [make_run_payload("a")]})
        assert [run.id for run in parse_batch(body)] == ["a"]

    def test_empty_body_is_empty_batch(self) -> None:
        assert parse_batch(b"") == []
        assert parse_batch("  ") == []
        assert parse_batch(b"[]") == []

    def test_invalid_json(self) -> None:
        with pytest.raises(BatchParseError, match="Invalid JSON"):
            parse_batch(b"{not json")

    def test_not_a_list(self) -> None:
        with pytest.raises(BatchParseError, match="Expected a list"):
            parse_batch(b'{"id": "x"}')

    def test_invalid_run(self) -> None:
        payload = make_run_payload()
        del payload["category"]
        with pytest.raises(BatchParseError, match="Invalid run"):
            parse_batch(orjson.dumps([payload]))

    def test_non_verified_status_parsed(self) -> None:
        runs = parse_batch(orjson.dumps([make_run_payload(status="new")]))
        assert runs[0].status == RunStatus.NEW
