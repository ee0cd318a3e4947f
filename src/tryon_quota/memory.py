"""InMemoryQuotaStore 実装"""

from __future__ import annotations

import asyncio
import copy

import structlog

from .store import (
    Document,
    DocumentListener,
    ErrorListener,
    QuotaStore,
    Subscription,
    UpdateFn,
)

logger = structlog.stdlib.get_logger(__name__)


class _MemorySubscription(Subscription):
    def __init__(self, store: InMemoryQuotaStore, listener: DocumentListener) -> None:
        self._store = store
        self._listener = listener

    async def close(self) -> None:
        self._store._remove_listener(self._listener)


class InMemoryQuotaStore(QuotaStore):
    """Single-process store guarded by an asyncio lock."""

    def __init__(self, document: Document | None = None) -> None:
        self._document = copy.deepcopy(document)
        self._lock = asyncio.Lock()
        self._listeners: list[DocumentListener] = []

    async def get(self) -> Document | None:
        return copy.deepcopy(self._document)

    async def run_transaction(self, update: UpdateFn) -> None:
        async with self._lock:
            written = update(copy.deepcopy(self._document))
            if written is None:
                return
            self._document = copy.deepcopy(written)
            snapshot = copy.deepcopy(written)
        await self._publish(snapshot)

    async def subscribe(
        self,
        listener: DocumentListener,
        on_error: ErrorListener | None = None,
    ) -> Subscription:
        self._listeners.append(listener)
        return _MemorySubscription(self, listener)

    def _remove_listener(self, listener: DocumentListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _publish(self, document: Document) -> None:
        for listener in list(self._listeners):
            try:
                await listener(copy.deepcopy(document))
            except Exception:
                logger.exception("quota listener failed")
