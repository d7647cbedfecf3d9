"""Subscription stores."""

from srcsender.store.base import StoreUnavailableError, SubscriptionStore
from srcsender.store.json_file import JsonFileSubscriptionStore
from srcsender.store.memory import InMemorySubscriptionStore

__all__ = [
    "InMemorySubscriptionStore",
    "JsonFileSubscriptionStore",
    "StoreUnavailableError",
    "SubscriptionStore",
]
