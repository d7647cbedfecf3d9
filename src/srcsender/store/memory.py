"""
In-memory subscription store.

Used for tests and single-process deployments seeded at startup.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from srcsender.store.base import SubscriptionStore

if TYPE_CHECKING:
    from collections.abc import Iterable

    from srcsender.contracts.subscriptions import Subscription


class InMemorySubscriptionStore(SubscriptionStore):
    """Subscriptions held in a dict keyed by webhook URL."""

    def __init__(self, subscriptions: Iterable[Subscription] = ()) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self.deleted: list[str] = []  # URLs removed, in deletion order
        for subscription in subscriptions:
            self.add(subscription)

    def add(self, subscription: Subscription) -> None:
        """Insert or replace a subscription."""
        self._subscriptions[subscription.webhook_url] = subscription

    async def list_subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions.values())

    async def delete_subscription(self, webhook_url: str) -> bool:
        removed = self._subscriptions.pop(webhook_url, None)
        if removed is None:
            return False
        self.deleted.append(webhook_url)
        return True

    def __len__(self) -> int:
        return len(self._subscriptions)
