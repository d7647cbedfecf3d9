"""
Notification payload contract.

A typed Discord embed. Composition works with these models only; the wire
body is produced by ``NotificationPayload.to_wire()`` at the delivery boundary.
"""

from __future__ import annotations

from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_EMBED_COLOR = 15899392


class EmbedAuthor(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    url: str | None = None
    icon_url: str | None = None


class EmbedField(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    value: str
    inline: bool = True


class EmbedFooter(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    text: str
    icon_url: str | None = None


class NotificationPayload(BaseModel):
    """
    A single-embed Discord webhook message.

    Attributes:
        title: Embed title.
        description: Embed description (Discord markdown).
        url: Link the title points at (the run page).
        color: Embed accent colour as a 24-bit integer.
        author: Triggering participant.
        fields: Ordered embed fields.
        footer: Rank footer, present only for ranked runs.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str
    description: str
    url: str | None = None
    color: int = Field(default=DEFAULT_EMBED_COLOR, ge=0, le=0xFFFFFF)
    author: EmbedAuthor | None = None
    fields: list[EmbedField] = Field(default_factory=list)
    footer: EmbedFooter | None = None

    def field_value(self, name: str) -> str | None:
        """Value of the first field with the given name."""
        for item in self.fields:
            if item.name == name:
                return item.value
        return None

    def to_wire(self) -> dict[str, Any]:
        """Discord webhook execute body."""
        embed = self.model_dump(mode="json", exclude_none=True)
        return {"content": None, "embeds": [embed], "attachments": []}

    def to_json(self) -> bytes:
        return orjson.dumps(self.to_wire())
