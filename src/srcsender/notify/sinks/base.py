"""
Base sink protocol.

Abstract base for notification delivery sinks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from srcsender.contracts.notifications import NotificationPayload


class DeliveryOutcome(str, Enum):
    """What a destination did with a notification."""

    DELIVERED = "delivered"  # 2xx
    GONE = "gone"  # 404, destination deleted
    RATE_LIMITED = "rate_limited"  # 429, dropped without retry
    FAILED = "failed"  # Any other status or transport error


@dataclass
class DeliveryResult:
    """Result of a delivery attempt."""

    outcome: DeliveryOutcome
    sink_name: str
    error: str | None = None
    status_code: int | None = None
    retry_after_s: float | None = None  # For rate limit responses

    @property
    def success(self) -> bool:
        return self.outcome == DeliveryOutcome.DELIVERED


class DeliverySink(ABC):
    """Abstract base class for delivery sinks."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this sink."""
        ...

    @abstractmethod
    async def send(self, webhook_url: str, payload: NotificationPayload) -> DeliveryResult:
        """
        Send a notification to one destination.

        Args:
            webhook_url: Destination webhook URL.
            payload: Composed notification.

        Returns:
            DeliveryResult describing the outcome. Failures are reported, not
            raised.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any resources held by this sink."""
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
