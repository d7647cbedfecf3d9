"""
Run notification module.

Matches verified runs against subscriptions, classifies them as ordinary
runs, personal bests or world records, and delivers Discord embeds.
"""

from __future__ import annotations

from srcsender.notify.classifier import EventClassifier, LeaderboardSource
from srcsender.notify.composer import NotificationComposer, compose_notification, format_duration
from srcsender.notify.context import ServiceContext, build_context
from srcsender.notify.matcher import MatchResult, match_subscription, match_subscriptions
from srcsender.notify.pipeline import BatchReport, NotificationPipeline, PipelineMetrics

__all__ = [
    "BatchReport",
    "EventClassifier",
    "LeaderboardSource",
    "MatchResult",
    "NotificationComposer",
    "NotificationPipeline",
    "PipelineMetrics",
    "ServiceContext",
    "build_context",
    "compose_notification",
    "format_duration",
    "match_subscription",
    "match_subscriptions",
]
