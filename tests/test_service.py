"""GenerationQuotaService tests against the in-memory store."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from conftest import FakeClock
from tryon_quota import (
    GenerationQuotaService,
    InMemoryQuotaStore,
    QuotaErrorCodes,
    QuotaExhaustedError,
    QuotaRecord,
    QuotaSection,
    QuotaState,
    QuotaUnavailableError,
)

UTC = timezone.utc


def _seed(store: InMemoryQuotaStore, count: int, resets_at: datetime) -> None:
    store._document = QuotaRecord(count=count, resets_at=resets_at).to_document()


async def _stored(store: InMemoryQuotaStore) -> QuotaRecord:
    document = await store.get()
    assert document is not None
    return QuotaRecord.from_document(document)


async def test_absent_record_resets_and_consumes(
    service: GenerationQuotaService, store: InMemoryQuotaStore
) -> None:
    """Scenario A: the first call creates the record with limit - 1."""
    result = await service.try_consume()
    assert result.success is True
    assert result.remaining == 99
    record = await _stored(store)
    assert record.count == 99
    assert record.resets_at == datetime(2026, 10, 20, 1, 0, tzinfo=UTC)


async def test_expired_record_resets(
    service: GenerationQuotaService, store: InMemoryQuotaStore, clock: FakeClock
) -> None:
    """P2: an expired record is restored to limit - 1 with the next boundary."""
    _seed(store, 0, clock.now - timedelta(minutes=5))
    result = await service.try_consume()
    assert result.success is True
    record = await _stored(store)
    assert record.count == 99
    assert record.resets_at == datetime(2026, 10, 20, 1, 0, tzinfo=UTC)
    assert record.resets_at > clock.now


async def test_record_expiring_exactly_now_resets(
    service: GenerationQuotaService, store: InMemoryQuotaStore, clock: FakeClock
) -> None:
    _seed(store, 0, clock.now)
    result = await service.try_consume()
    assert result.success is True
    assert (await _stored(store)).count == 99


async def test_decrement_by_exactly_one(
    service: GenerationQuotaService, store: InMemoryQuotaStore, clock: FakeClock
) -> None:
    """P4"""
    resets_at = clock.now + timedelta(hours=3)
    _seed(store, 40, resets_at)
    result = await service.try_consume()
    assert result.success is True
    assert result.remaining == 39
    record = await _stored(store)
    assert record == QuotaRecord(count=39, resets_at=resets_at)


async def test_exhausted_reports_hours_and_minutes(
    service: GenerationQuotaService, store: InMemoryQuotaStore, clock: FakeClock
) -> None:
    """Scenario B"""
    resets_at = clock.now + timedelta(hours=2, minutes=10)
    _seed(store, 0, resets_at)
    result = await service.try_consume()
    assert result.success is False
    assert result.exhausted is True
    assert isinstance(result.error, QuotaExhaustedError)
    assert "2h" in result.message
    assert "10m" in result.message
    assert result.resets_at == resets_at
    assert (await _stored(store)).count == 0


async def test_exhausted_under_a_minute(
    service: GenerationQuotaService, store: InMemoryQuotaStore, clock: FakeClock
) -> None:
    """Scenario C"""
    _seed(store, 0, clock.now + timedelta(seconds=30))
    result = await service.try_consume()
    assert result.exhausted is True
    assert result.message == "No generations left. Please check back in a moment."


async def test_concurrent_consumers_never_overspend(
    service: GenerationQuotaService, store: InMemoryQuotaStore, clock: FakeClock
) -> None:
    """Scenario D / P1: 10 concurrent calls against 5 units."""
    _seed(store, 5, clock.now + timedelta(hours=1))
    results = await asyncio.gather(*(service.try_consume() for _ in range(10)))
    assert sum(r.success for r in results) == 5
    assert sum(r.exhausted for r in results) == 5
    assert (await _stored(store)).count == 0


async def test_concurrent_consumers_on_absent_record(
    service: GenerationQuotaService, store: InMemoryQuotaStore
) -> None:
    results = await asyncio.gather(*(service.try_consume() for _ in range(20)))
    assert all(r.success for r in results)
    assert (await _stored(store)).count == 80


async def test_stored_count_above_limit_is_clamped(
    store: InMemoryQuotaStore, clock: FakeClock
) -> None:
    service = GenerationQuotaService(
        store, QuotaSection(limit=10, timezone="UTC"), clock=clock
    )
    _seed(store, 50, clock.now + timedelta(hours=1))
    result = await service.try_consume()
    assert result.remaining == 9


async def test_malformed_record_is_repaired(
    service: GenerationQuotaService, store: InMemoryQuotaStore
) -> None:
    store._document = {"count": "lots"}
    result = await service.try_consume()
    assert result.success is True
    record = await _stored(store)
    assert record.count == 99


async def test_read_state_returns_stored_values(
    service: GenerationQuotaService, store: InMemoryQuotaStore, clock: FakeClock
) -> None:
    resets_at = clock.now + timedelta(hours=5)
    _seed(store, 12, resets_at)
    state = await service.read_state()
    assert state == QuotaState(remaining=12, resets_at=resets_at, estimated=False)


async def test_read_state_estimates_absent_record(
    service: GenerationQuotaService,
) -> None:
    state = await service.read_state()
    assert state.remaining == 100
    assert state.resets_at == datetime(2026, 10, 20, 1, 0, tzinfo=UTC)
    assert state.estimated is True


async def test_read_never_mutates(
    service: GenerationQuotaService, store: InMemoryQuotaStore, clock: FakeClock
) -> None:
    """P3: repeated reads of an expired or absent record leave it untouched."""
    for _ in range(5):
        await service.read_state()
    assert await store.get() is None

    _seed(store, 3, clock.now - timedelta(hours=1))
    before = await store.get()
    for _ in range(5):
        state = await service.read_state()
        assert state.estimated is True
        assert state.remaining == 100
    assert await store.get() == before


async def test_read_state_estimates_malformed_record(
    service: GenerationQuotaService, store: InMemoryQuotaStore
) -> None:
    store._document = {"resets_at": "soon"}
    state = await service.read_state()
    assert state.estimated is True
    assert await store.get() == {"resets_at": "soon"}


async def test_subscribe_delivers_initial_and_updates(
    service: GenerationQuotaService,
) -> None:
    states: list[QuotaState] = []

    async def listener(state: QuotaState) -> None:
        states.append(state)

    subscription = await service.subscribe(listener)
    assert states[0].remaining == 100
    assert states[0].estimated is True

    await service.try_consume()
    await service.try_consume()
    assert [s.remaining for s in states[1:]] == [99, 98]

    await subscription.close()
    await service.try_consume()
    assert len(states) == 3


async def test_exhausted_attempt_does_not_notify(
    service: GenerationQuotaService, store: InMemoryQuotaStore, clock: FakeClock
) -> None:
    _seed(store, 0, clock.now + timedelta(hours=1))
    states: list[QuotaState] = []

    async def listener(state: QuotaState) -> None:
        states.append(state)

    await service.subscribe(listener)
    await service.try_consume()
    assert len(states) == 1


class _BrokenStore(InMemoryQuotaStore):
    def __init__(self, error: Exception) -> None:
        super().__init__()
        self._error = error

    async def run_transaction(self, update):  # type: ignore[override]
        raise self._error


async def test_store_failure_fails_closed(settings: QuotaSection, clock: FakeClock) -> None:
    error = QuotaUnavailableError(QuotaErrorCodes.PERMISSION_DENIED, "denied")
    service = GenerationQuotaService(_BrokenStore(error), settings, clock=clock)
    result = await service.try_consume()
    assert result.success is False
    assert result.unavailable is True
    assert result.exhausted is False
    assert result.error is error


async def test_unexpected_failure_fails_closed(
    settings: QuotaSection, clock: FakeClock
) -> None:
    service = GenerationQuotaService(
        _BrokenStore(RuntimeError("boom")), settings, clock=clock
    )
    result = await service.try_consume()
    assert result.success is False
    assert result.unavailable is True
    assert result.error.code == QuotaErrorCodes.UNEXPECTED_ERROR
    assert isinstance(result.error.__cause__, RuntimeError)


async def test_read_state_propagates_store_errors(
    settings: QuotaSection, clock: FakeClock
) -> None:
    class _Unreadable(InMemoryQuotaStore):
        async def get(self):  # type: ignore[override]
            raise QuotaUnavailableError(QuotaErrorCodes.BACKEND_UNAVAILABLE, "down")

    service = GenerationQuotaService(_Unreadable(), settings, clock=clock)
    with pytest.raises(QuotaUnavailableError):
        await service.read_state()


async def test_read_state_clamps_count_above_limit(
    store: InMemoryQuotaStore, clock: FakeClock
) -> None:
    service = GenerationQuotaService(
        store, QuotaSection(limit=10, timezone="UTC"), clock=clock
    )
    _seed(store, 50, clock.now + timedelta(hours=1))
    state = await service.read_state()
    assert state.remaining == 10
    assert state.estimated is False


class _SkippingStore(InMemoryQuotaStore):
    async def run_transaction(self, update):  # type: ignore[override]
        return None


async def test_transaction_that_never_applies_fails_closed(
    settings: QuotaSection, clock: FakeClock
) -> None:
    service = GenerationQuotaService(_SkippingStore(), settings, clock=clock)
    result = await service.try_consume()
    assert result.success is False
    assert result.unavailable is True
    assert result.error.code == QuotaErrorCodes.UNEXPECTED_ERROR
