"""
Delivery sinks.

Sink implementations for notification delivery.
"""

from __future__ import annotations

from srcsender.notify.sinks.base import DeliveryOutcome, DeliveryResult, DeliverySink
from srcsender.notify.sinks.discord import DiscordWebhookSink

__all__ = [
    "DeliveryOutcome",
    "DeliveryResult",
    "DeliverySink",
    "DiscordWebhookSink",
]
