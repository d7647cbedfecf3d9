"""
Subscription store interface.

The notifier reads every subscription once per batch and deletes
subscriptions whose webhook no longer exists. Backends raise
``StoreUnavailableError`` for connectivity failures so callers never match
against a partial list.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from srcsender.contracts.subscriptions import Subscription


class StoreUnavailableError(Exception):
    """Raised when the subscription store cannot be reached or read."""


class SubscriptionStore(ABC):
    """Abstract base class for subscription stores."""

    @abstractmethod
    async def list_subscriptions(self) -> list[Subscription]:
        """
        Return every registered subscription.

        Raises:
            StoreUnavailableError: If the store cannot be read.
        """
        ...

    @abstractmethod
    async def delete_subscription(self, webhook_url: str) -> bool:
        """
        Remove the subscription for a webhook URL.

        Deleting an absent subscription is not an error.

        Returns:
            True if a subscription was removed.

        Raises:
            StoreUnavailableError: If the store cannot be written.
        """
        ...

    async def close(self) -> None:
        """Release any resources held by this store."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
