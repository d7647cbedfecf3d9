"""
Subscription contracts.

A subscription registers one Discord webhook URL for notifications. Documents
use the store's PascalCase field names (``WebhookUrl``, ``Records``,
``Verification``); models accept either those aliases or the Python names.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EventScope(str, Enum):
    """Which verified runs a subscription wants."""

    ALL = "all"
    PB = "pb"  # Personal bests and world records only


class RecordRules(BaseModel):
    """Category and participant rules for verified-run notifications."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    categories: list[str] = Field(default_factory=list, alias="Categories")
    users: list[str] = Field(default_factory=list, alias="Users")
    events: EventScope = Field(default=EventScope.ALL, alias="Events")

    @field_validator("categories", "users", mode="before")
    @classmethod
    def _null_list(cls, v: Any) -> Any:
        return v if v is not None else []

    @field_validator("events", mode="before")
    @classmethod
    def _normalize_events(cls, v: Any) -> Any:
        # Empty or unrecognised scopes mean every verified run.
        if isinstance(v, EventScope):
            return v
        if isinstance(v, str) and v.strip().lower() == EventScope.PB.value:
            return EventScope.PB
        return EventScope.ALL


class VerificationRules(BaseModel):
    """
    Verification-queue configuration.

    Stored with subscriptions but not acted on: queue notifications are not
    implemented.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    context: str = Field(default="", alias="Context")
    ids: list[str] = Field(default_factory=list, alias="IDs")
    events: list[str] = Field(default_factory=list, alias="Events")

    @field_validator("ids", "events", mode="before")
    @classmethod
    def _null_list(cls, v: Any) -> Any:
        return v if v is not None else []


class Subscription(BaseModel):
    """A registered notification destination, keyed by webhook URL."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    webhook_url: str = Field(..., min_length=1, alias="WebhookUrl")
    records: RecordRules = Field(default_factory=RecordRules, alias="Records")
    verification: VerificationRules | None = Field(default=None, alias="Verification")

    @field_validator("records", mode="before")
    @classmethod
    def _null_records(cls, v: Any) -> Any:
        return v if v is not None else {}

    def to_document(self) -> dict[str, Any]:
        """Serialize using the store's field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
