"""
Data contracts for the run notification pipeline.

Inbound runs, stored subscriptions, ranking results and outbound Discord
payloads. These are the canonical schemas passed between modules.
"""

from srcsender.contracts.notifications import (
    DEFAULT_EMBED_COLOR,
    EmbedAuthor,
    EmbedField,
    EmbedFooter,
    NotificationPayload,
)
from srcsender.contracts.ranking import RankClassification, RankedRun, RankKind, ordinal
from srcsender.contracts.runs import (
    BatchParseError,
    Category,
    Game,
    GameAssets,
    Level,
    Names,
    Player,
    RunRecord,
    RunStatus,
    RunTimes,
    Variable,
    parse_batch,
)
from srcsender.contracts.subscriptions import (
    EventScope,
    RecordRules,
    Subscription,
    VerificationRules,
)

__all__ = [
    "DEFAULT_EMBED_COLOR",
    "BatchParseError",
    "Category",
    "EmbedAuthor",
    "EmbedField",
    "EmbedFooter",
    "EventScope",
    "Game",
    "GameAssets",
    "Level",
    "Names",
    "NotificationPayload",
    "Player",
    "RankClassification",
    "RankKind",
    "RankedRun",
    "RecordRules",
    "RunRecord",
    "RunStatus",
    "RunTimes",
    "Subscription",
    "Variable",
    "VerificationRules",
    "ordinal",
    "parse_batch",
]
