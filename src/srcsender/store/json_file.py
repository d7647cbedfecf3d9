"""
JSON document subscription store.

Subscriptions live in one file holding a JSON array of store documents
(``{"WebhookUrl": ..., "Records": {...}}``). Writes go to a temporary file
that replaces the existing one, so readers never see a half-written list.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any

import orjson
from pydantic import ValidationError

from srcsender.contracts.subscriptions import Subscription
from srcsender.store.base import StoreUnavailableError, SubscriptionStore

logger = logging.getLogger(__name__)


def _document_url(document: dict[str, Any]) -> Any:
    # Documents may use the store aliases or the field names
    return document.get("WebhookUrl", document.get("webhook_url"))


class JsonFileSubscriptionStore(SubscriptionStore):
    """File-backed store. A missing file is an empty store."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._write_lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_documents(self) -> list[dict[str, Any]]:
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StoreUnavailableError(f"Cannot read {self._path}: {e}") from e

        if not raw.strip():
            return []
        try:
            documents = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise StoreUnavailableError(f"Corrupt subscription file {self._path}: {e}") from e
        if not isinstance(documents, list):
            raise StoreUnavailableError(f"Expected a JSON array in {self._path}")
        return [doc for doc in documents if isinstance(doc, dict)]

    def _write_documents(self, documents: list[dict[str, Any]]) -> None:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(orjson.dumps(documents, option=orjson.OPT_INDENT_2))
            os.replace(tmp_path, self._path)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot write {self._path}: {e}") from e

    def _load(self) -> list[Subscription]:
        subscriptions: list[Subscription] = []
        for document in self._read_documents():
            try:
                subscriptions.append(Subscription.model_validate(document))
            except ValidationError as e:
                logger.warning(
                    "Skipping invalid subscription document",
                    extra={"error_count": e.error_count()},
                )
        return subscriptions

    def _delete(self, webhook_url: str) -> bool:
        documents = self._read_documents()
        kept = [doc for doc in documents if _document_url(doc) != webhook_url]
        if len(kept) == len(documents):
            return False
        self._write_documents(kept)
        return True

    def _save(self, subscription: Subscription) -> None:
        documents = [
            doc
            for doc in self._read_documents()
            if _document_url(doc) != subscription.webhook_url
        ]
        documents.append(subscription.to_document())
        self._write_documents(documents)

    async def list_subscriptions(self) -> list[Subscription]:
        return await asyncio.to_thread(self._load)

    async def delete_subscription(self, webhook_url: str) -> bool:
        async with self._write_lock:
            return await asyncio.to_thread(self._delete, webhook_url)

    async def save_subscription(self, subscription: Subscription) -> None:
        """Insert or replace a subscription document."""
        async with self._write_lock:
            await asyncio.to_thread(self._save, subscription)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(path={str(self._path)!r})"
