"""
Notification composer.

Deterministic, template-based construction of the Discord embed for a run.
Composition never touches the network; ranking data arrives pre-computed as a
``RankClassification``.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from srcsender.contracts.notifications import (
    DEFAULT_EMBED_COLOR,
    EmbedAuthor,
    EmbedField,
    EmbedFooter,
    NotificationPayload,
)

if TYPE_CHECKING:
    from srcsender.contracts.ranking import RankClassification
    from srcsender.contracts.runs import RunRecord

# Fallback trophies when a game has no custom icon for a podium place
DEFAULT_TROPHY_ICONS = {
    1: "https://www.speedrun.com/images/1st.png",
    2: "https://www.speedrun.com/images/2nd.png",
    3: "https://www.speedrun.com/images/3rd.png",
}


def format_duration(seconds: float) -> str:
    """
    Render a run time as ``1h 2m 3s 456ms``.

    Leading zero units are omitted (``2m 5s``), inner ones kept (``1h 0m 0s``).
    Milliseconds are rounded to three digits and shown only when non-zero.

    >>> format_duration(125.25), format_duration(3600.0), format_duration(0)
    ('2m 5s 250ms', '1h 0m 0s', '0s')
    """
    fraction, whole = math.modf(max(seconds, 0.0))
    total_s = int(whole)
    millis = round(fraction * 1000)
    if millis >= 1000:
        total_s += 1
        millis -= 1000

    hours, remainder = divmod(total_s, 3600)
    minutes, secs = divmod(remainder, 60)

    parts: list[str] = []
    if hours:
        parts.append(f"{hours}h")
    if hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    if millis:
        parts.append(f"{millis:03d}ms")
    return " ".join(parts)


def category_label(run: RunRecord) -> str:
    """Category name, with chosen subcategory labels in parentheses."""
    subcategories = [label for variable, label in run.resolved_variables() if variable.is_subcategory]
    if not subcategories:
        return run.category.name
    return f"{run.category.name} ({', '.join(subcategories)})"


def variables_text(run: RunRecord) -> str:
    """Non-subcategory variables as ``name: label`` pairs, or empty string."""
    return ", ".join(
        f"{variable.name}: {label}"
        for variable, label in run.resolved_variables()
        if not variable.is_subcategory
    )


def players_text(run: RunRecord) -> str:
    """Comma-joined participant names, or empty string for solo runs."""
    if len(run.players) <= 1:
        return ""
    return ", ".join(player.display_name for player in run.players)


def author_phrase(run: RunRecord, participant_index: int) -> str:
    """Triggering participant, with a count of the other participants."""
    name = run.players[participant_index].display_name
    others = len(run.players) - 1
    if others == 1:
        return f"{name} and 1 other"
    if others > 1:
        return f"{name} and {others} others"
    return name


def trophy_icon(run: RunRecord, place: int | None) -> str | None:
    """Trophy icon for a podium place; None off the podium."""
    if place is None or place not in DEFAULT_TROPHY_ICONS:
        return None
    return run.game.assets.trophy_for(place) or DEFAULT_TROPHY_ICONS[place]


class NotificationComposer:
    """
    Builds the embed for a run, triggering participant and classification.

    Field order: Level (IL runs), Players (multi-participant runs), Category,
    Time, Variables (when any non-subcategory variable is set).
    """

    def __init__(self, color: int = DEFAULT_EMBED_COLOR) -> None:
        self._color = color

    def compose(
        self,
        run: RunRecord,
        participant_index: int,
        classification: RankClassification,
    ) -> NotificationPayload:
        """Compose the notification for one destination."""
        player = run.players[participant_index]
        game = run.game.name
        category = category_label(run)
        author = author_phrase(run, participant_index)

        fields: list[EmbedField] = []
        if run.level is not None:
            fields.append(EmbedField(name="Level", value=run.level.name))
        players = players_text(run)
        if players:
            fields.append(EmbedField(name="Players", value=players))
        fields.append(EmbedField(name="Category", value=category))
        fields.append(EmbedField(name="Time", value=format_duration(run.duration_s)))
        variables = variables_text(run)
        if variables:
            fields.append(EmbedField(name="Variables", value=variables))

        if classification.is_world_record:
            title = f"New world record in {category} in {game}!"
            description = f"**{author}** got a new world record in **{game}**!"
        elif classification.is_personal_best:
            title = f"New personal best by {author}!"
            description = f"**{author}** got a new personal best in **{game}**!"
        else:
            title = f"New run by {author}!"
            description = f"**{author}** submitted a new run in **{game}**!"

        footer = None
        if classification.ordinal is not None:
            footer = EmbedFooter(
                text=f"They're now {classification.ordinal} place!",
                icon_url=trophy_icon(run, classification.place),
            )

        return NotificationPayload(
            title=title,
            description=description,
            url=run.weblink or None,
            color=self._color,
            author=EmbedAuthor(
                name=player.display_name,
                url=player.weblink or None,
                icon_url=player.image_uri or None,
            ),
            fields=fields,
            footer=footer,
        )


def compose_notification(
    run: RunRecord,
    participant_index: int,
    classification: RankClassification,
    color: int = DEFAULT_EMBED_COLOR,
) -> NotificationPayload:
    """Compose a notification with a one-off composer."""
    return NotificationComposer(color).compose(run, participant_index, classification)
