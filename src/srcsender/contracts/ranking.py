"""
Ranking contracts: upstream ranked-run references and run classifications.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RankedRun(BaseModel):
    """One entry of a leaderboard or personal-bests list."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    place: int = Field(..., ge=0, description="Leaderboard place, 0 if unplaced")
    run_id: str = Field(..., min_length=1)


class RankKind(str, Enum):
    ORDINARY = "ordinary"
    PERSONAL_BEST = "personal_best"
    WORLD_RECORD = "world_record"


def ordinal(n: int) -> str:
    """
    English ordinal for a positive integer.

    >>> ordinal(1), ordinal(2), ordinal(11), ordinal(23)
    ('1st', '2nd', '11th', '23rd')
    """
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


class RankClassification(BaseModel):
    """
    How a run ranks for the participant that triggered a notification.

    ``place`` is None when the run is not currently ranked or the upstream
    lookup failed.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: RankKind = RankKind.ORDINARY
    place: int | None = Field(default=None, ge=1)

    @classmethod
    def ordinary(cls) -> RankClassification:
        return cls()

    @classmethod
    def from_place(cls, place: int) -> RankClassification:
        kind = RankKind.WORLD_RECORD if place == 1 else RankKind.PERSONAL_BEST
        return cls(kind=kind, place=place)

    @property
    def is_personal_best(self) -> bool:
        """World records are personal bests too."""
        return self.kind in (RankKind.PERSONAL_BEST, RankKind.WORLD_RECORD)

    @property
    def is_world_record(self) -> bool:
        return self.kind == RankKind.WORLD_RECORD

    @property
    def ordinal(self) -> str | None:
        if self.place is None:
            return None
        return ordinal(self.place)
