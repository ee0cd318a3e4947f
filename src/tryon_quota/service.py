"""Generation quota service."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from .config import QuotaSection
from .exceptions import (
    MalformedRecordError,
    QuotaErrorCodes,
    QuotaExhaustedError,
    QuotaUnavailableError,
)
from .metrics import quota_consume_total
from .models import ConsumeResult, QuotaRecord, QuotaState
from .schedule import format_retry_message, next_reset_at
from .store import Document, QuotaStore, Subscription

logger = structlog.stdlib.get_logger(__name__)

Clock = Callable[[], datetime]
StateListener = Callable[[QuotaState], Awaitable[None]]
StateErrorListener = Callable[[QuotaUnavailableError], Awaitable[None]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Consumed:
    record: QuotaRecord | None = None
    reset: bool = False


class GenerationQuotaService:
    """Daily generation counter shared by every caller.

    ``try_consume`` is the only writer. The period rolls over lazily inside
    that transaction; ``read_state`` only projects what the next write will do.
    """

    def __init__(
        self,
        store: QuotaStore,
        settings: QuotaSection | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._settings = settings or QuotaSection()
        self._tz = self._settings.tzinfo()
        self._clock = clock

    @property
    def limit(self) -> int:
        return self._settings.limit

    def _next_reset(self, now: datetime) -> datetime:
        return next_reset_at(now, self._settings.anchor_hour, self._tz)

    def _parse(self, document: Document | None) -> QuotaRecord | None:
        if document is None:
            return None
        try:
            return QuotaRecord.from_document(document)
        except MalformedRecordError as e:
            logger.warning("malformed quota record treated as expired", detail=e.message)
            return None

    async def try_consume(self) -> ConsumeResult:
        """Consume one unit, resetting the period first when it has expired.

        Returns a failed result carrying QuotaExhaustedError when no unit is
        left, or QuotaUnavailableError when the store could not commit.
        """
        consumed = _Consumed()

        def apply(document: Document | None) -> Document:
            now = self._clock()
            record = self._parse(document)
            if record is None or record.is_expired(now):
                fresh = QuotaRecord(count=self.limit - 1, resets_at=self._next_reset(now))
                consumed.record, consumed.reset = fresh, True
                return fresh.to_document()
            if record.count <= 0:
                raise QuotaExhaustedError(
                    format_retry_message(record.resets_at - now), record.resets_at
                )
            updated = QuotaRecord(
                count=min(record.count, self.limit) - 1, resets_at=record.resets_at
            )
            consumed.record, consumed.reset = updated, False
            return updated.to_document()

        try:
            await self._store.run_transaction(apply)
        except QuotaExhaustedError as e:
            quota_consume_total.add(1, {"outcome": "exhausted"})
            logger.info("generation quota exhausted", resets_at=e.resets_at.isoformat())
            return ConsumeResult.failed(e)
        except QuotaUnavailableError as e:
            quota_consume_total.add(1, {"outcome": "unavailable"})
            logger.error("quota transaction failed", code=e.code, detail=e.detail)
            return ConsumeResult.failed(e)
        except Exception as e:
            quota_consume_total.add(1, {"outcome": "unavailable"})
            logger.exception("unexpected error while consuming quota")
            return ConsumeResult.failed(
                QuotaUnavailableError(
                    code=QuotaErrorCodes.UNEXPECTED_ERROR,
                    message="An unknown error occurred while updating generation count.",
                    cause=e,
                )
            )

        record = consumed.record
        if record is None:
            quota_consume_total.add(1, {"outcome": "unavailable"})
            logger.error("quota transaction committed without applying the update")
            return ConsumeResult.failed(
                QuotaUnavailableError(
                    code=QuotaErrorCodes.UNEXPECTED_ERROR,
                    message="The store finished the transaction without applying it.",
                )
            )
        if consumed.reset:
            quota_consume_total.add(1, {"outcome": "reset"})
            logger.info(
                "generation quota reset",
                remaining=record.count,
                resets_at=record.resets_at.isoformat(),
            )
        else:
            quota_consume_total.add(1, {"outcome": "granted"})
            logger.debug("generation unit consumed", remaining=record.count)
        return ConsumeResult.granted(record)

    def _state(self, document: Document | None, now: datetime) -> QuotaState:
        record = self._parse(document)
        if record is None or record.is_expired(now):
            return QuotaState(
                remaining=self.limit, resets_at=self._next_reset(now), estimated=True
            )
        return QuotaState(
            remaining=min(record.count, self.limit), resets_at=record.resets_at
        )

    async def read_state(self) -> QuotaState:
        """Current remaining count and reset time. Never writes.

        Raises:
            QuotaUnavailableError: the store could not be read
        """
        return self._state(await self._store.get(), self._clock())

    async def subscribe(
        self,
        listener: StateListener,
        on_error: StateErrorListener | None = None,
    ) -> Subscription:
        """Deliver the current state now and a new state after every change."""

        async def on_document(document: Document | None) -> None:
            await listener(self._state(document, self._clock()))

        async def on_store_error(error: Exception) -> None:
            if on_error is None:
                return
            if not isinstance(error, QuotaUnavailableError):
                error = QuotaUnavailableError(
                    code=QuotaErrorCodes.BACKEND_UNAVAILABLE,
                    message="Could not watch the generation counter",
                    cause=error,
                )
            await on_error(error)

        subscription = await self._store.subscribe(on_document, on_store_error)
        try:
            await listener(await self.read_state())
        except QuotaUnavailableError:
            await subscription.close()
            raise
        return subscription
