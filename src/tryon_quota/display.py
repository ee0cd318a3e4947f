"""Live quota view for the display layer."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import structlog

from .exceptions import QuotaUnavailableError
from .models import QuotaState
from .schedule import format_countdown
from .service import GenerationQuotaService
from .store import Subscription

logger = structlog.stdlib.get_logger(__name__)

COUNT_UNAVAILABLE_MESSAGE = "Could not get generation count. Functionality may be limited."


class Availability(str, Enum):
    """Whether the generate action can be offered."""

    CONNECTING = "connecting"
    READY = "ready"
    EXHAUSTED = "exhausted"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class QuotaView:
    """Latest known counter values. None means not known yet."""

    generations_left: int | None = None
    resets_at: datetime | None = None
    error: str | None = None

    @property
    def availability(self) -> Availability:
        if self.error is not None:
            return Availability.UNAVAILABLE
        if self.generations_left is None:
            return Availability.CONNECTING
        if self.generations_left <= 0:
            return Availability.EXHAUSTED
        return Availability.READY

    def countdown(self, now: datetime) -> str | None:
        if self.resets_at is None:
            return None
        return format_countdown(self.resets_at, now)


class QuotaMonitor:
    """Keeps a QuotaView current through a live subscription."""

    def __init__(self, service: GenerationQuotaService) -> None:
        self._service = service
        self._view = QuotaView()
        self._subscription: Subscription | None = None

    @property
    def view(self) -> QuotaView:
        return self._view

    async def start(self) -> None:
        if self._subscription is not None:
            return
        try:
            self._subscription = await self._service.subscribe(
                self._on_state, self._on_error
            )
        except QuotaUnavailableError as e:
            await self._on_error(e)

    async def stop(self) -> None:
        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None

    async def _on_state(self, state: QuotaState) -> None:
        self._view = QuotaView(generations_left=state.remaining, resets_at=state.resets_at)

    async def _on_error(self, error: QuotaUnavailableError) -> None:
        logger.error("error fetching live generation count", code=error.code, detail=error.detail)
        self._view = QuotaView(error=COUNT_UNAVAILABLE_MESSAGE)
