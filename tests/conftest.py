"""Shared fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from tryon_quota import GenerationQuotaService, InMemoryQuotaStore, QuotaSection


class FakeClock:
    """Adjustable clock injected into the service."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> QuotaSection:
    return QuotaSection(limit=100, anchor_hour=1, timezone="UTC")


@pytest.fixture
def store() -> InMemoryQuotaStore:
    return InMemoryQuotaStore()


@pytest.fixture
def service(
    store: InMemoryQuotaStore, settings: QuotaSection, clock: FakeClock
) -> GenerationQuotaService:
    return GenerationQuotaService(store, settings, clock=clock)
