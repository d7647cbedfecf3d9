"""
Run contracts for speedrun.com submissions.

Parses the run objects speedrun.com embeds into webhook batches
(``?embed=game,category.variables,level,players``). Embedded resources arrive
wrapped in ``{"data": ...}`` envelopes; the validators below unwrap them so the
rest of the pipeline works with flat, frozen models.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


class BatchParseError(ValueError):
    """Raised when an inbound run batch cannot be decoded."""


def _unwrap(value: Any) -> Any:
    """Strip a speedrun.com ``{"data": ...}`` envelope."""
    if isinstance(value, dict) and "data" in value:
        return value["data"]
    return value


def _asset_uri(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("uri") or "")
    return ""


class RunStatus(str, Enum):
    """Moderation status of a run."""

    NEW = "new"
    VERIFIED = "verified"
    REJECTED = "rejected"


class Names(BaseModel):
    """Localized names."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    international: str = ""
    japanese: str | None = None


class GameAssets(BaseModel):
    """Trophy icons a game may override."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    trophy_1st: str = Field(default="", alias="trophy-1st")
    trophy_2nd: str = Field(default="", alias="trophy-2nd")
    trophy_3rd: str = Field(default="", alias="trophy-3rd")
    trophy_4th: str = Field(default="", alias="trophy-4th")

    @field_validator("trophy_1st", "trophy_2nd", "trophy_3rd", "trophy_4th", mode="before")
    @classmethod
    def _extract_uri(cls, v: Any) -> str:
        if isinstance(v, str):
            return v
        return _asset_uri(v)

    def trophy_for(self, place: int) -> str:
        """Game-specific trophy URI for a place, or empty string."""
        return {
            1: self.trophy_1st,
            2: self.trophy_2nd,
            3: self.trophy_3rd,
            4: self.trophy_4th,
        }.get(place, "")


class Game(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    names: Names = Field(default_factory=Names)
    assets: GameAssets = Field(default_factory=GameAssets)

    @field_validator("assets", mode="before")
    @classmethod
    def _null_assets(cls, v: Any) -> Any:
        return v if v is not None else {}

    @property
    def name(self) -> str:
        return self.names.international


class Level(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str = ""


class Variable(BaseModel):
    """
    A category variable definition.

    ``choices`` maps choice id to display label. speedrun.com reports both
    ``values.choices`` (id -> label) and ``values.values`` (id -> {label, rules});
    either shape is accepted.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str
    name: str = ""
    is_subcategory: bool = Field(default=False, alias="is-subcategory")
    choices: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _extract_choices(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "choices" in data:
            return data
        values = data.get("values")
        choices: dict[str, str] = {}
        if isinstance(values, dict):
            raw_choices = values.get("choices")
            if isinstance(raw_choices, dict):
                choices = {str(k): str(v) for k, v in raw_choices.items()}
            else:
                raw_values = values.get("values")
                if isinstance(raw_values, dict):
                    for choice_id, choice in raw_values.items():
                        if isinstance(choice, dict) and "label" in choice:
                            choices[str(choice_id)] = str(choice["label"])
        return {**data, "choices": choices}


class Category(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str = ""
    variables: list[Variable] = Field(default_factory=list)

    @field_validator("variables", mode="before")
    @classmethod
    def _unwrap_variables(cls, v: Any) -> Any:
        v = _unwrap(v)
        return v if v is not None else []


class Player(BaseModel):
    """
    A run participant.

    Registered users carry ``id``, ``names`` and ``weblink``; guests only carry
    a free-form ``name``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = ""
    name: str = ""
    names: Names = Field(default_factory=Names)
    weblink: str = ""
    image_uri: str = ""

    @model_validator(mode="before")
    @classmethod
    def _extract_image(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "image_uri" in data:
            return data
        assets = data.get("assets")
        image = assets.get("image") if isinstance(assets, dict) else None
        return {**data, "image_uri": _asset_uri(image)}

    @field_validator("names", mode="before")
    @classmethod
    def _null_names(cls, v: Any) -> Any:
        return v if v is not None else {}

    @property
    def is_guest(self) -> bool:
        return not self.id

    @property
    def display_name(self) -> str:
        return self.names.international or self.name


class RunTimes(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    primary_t: float = 0.0


class RunRecord(BaseModel):
    """
    A speedrun submission as delivered in a webhook batch.

    Attributes:
        id: Run identifier.
        weblink: Permalink to the run page.
        game: Embedded game.
        level: Embedded level for individual-level runs, None for full-game runs.
        category: Embedded category with its variable definitions.
        values: Chosen variable values (variable id -> choice id).
        times: Run timing, ``primary_t`` in seconds.
        status: Moderation status.
        players: Ordered participants.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., min_length=1)
    weblink: str = ""
    game: Game
    level: Level | None = None
    category: Category
    values: dict[str, str] = Field(default_factory=dict)
    times: RunTimes = Field(default_factory=RunTimes)
    status: RunStatus
    players: list[Player] = Field(default_factory=list)

    @field_validator("game", "category", mode="before")
    @classmethod
    def _unwrap_embed(cls, v: Any) -> Any:
        return _unwrap(v)

    @field_validator("level", mode="before")
    @classmethod
    def _unwrap_level(cls, v: Any) -> Any:
        v = _unwrap(v)
        # Full-game runs embed the level as an empty list or null.
        if not v:
            return None
        return v

    @field_validator("players", mode="before")
    @classmethod
    def _unwrap_players(cls, v: Any) -> Any:
        v = _unwrap(v)
        return v if v is not None else []

    @field_validator("values", mode="before")
    @classmethod
    def _null_values(cls, v: Any) -> Any:
        return v if v is not None else {}

    @field_validator("status", mode="before")
    @classmethod
    def _unwrap_status(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return v.get("status")
        return v

    @property
    def duration_s(self) -> float:
        return self.times.primary_t

    def resolved_variables(self) -> list[tuple[Variable, str]]:
        """
        Chosen variables with their choice labels, in category declaration order.

        Values that reference an unknown variable or choice are skipped.
        """
        resolved: list[tuple[Variable, str]] = []
        for variable in self.category.variables:
            choice_id = self.values.get(variable.id)
            if choice_id is None:
                continue
            label = variable.choices.get(choice_id)
            if label is None:
                continue
            resolved.append((variable, label))
        return resolved

    def subcategory_values(self) -> dict[str, str]:
        """Chosen subcategory variables (variable id -> choice id)."""
        return {
            variable.id: self.values[variable.id]
            for variable, _ in self.resolved_variables()
            if variable.is_subcategory
        }

    @classmethod
    def from_json(cls, data: bytes | str) -> RunRecord:
        if isinstance(data, str):
            data = data.encode()
        return cls.model_validate(orjson.loads(data))


def parse_batch(body: bytes | str) -> list[RunRecord]:
    """
    Decode an inbound batch.

    Accepts a bare JSON array of runs or a ``{"data": [...]}`` envelope. An
    empty body is an empty batch.

    Raises:
        BatchParseError: If the body is not valid JSON or a run fails validation.
    """
    if isinstance(body, str):
        body = body.encode()
    if not body.strip():
        return []
    try:
        raw = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise BatchParseError(f"Invalid JSON: {e}") from e

    raw = _unwrap(raw)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise BatchParseError(f"Expected a list of runs, got {type(raw).__name__}")

    try:
        return [RunRecord.model_validate(item) for item in raw]
    except ValidationError as e:
        raise BatchParseError(f"Invalid run: {e.error_count()} validation error(s)") from e
