"""Build stores and services from configuration."""

from __future__ import annotations

from redis.asyncio import Redis

from .config import QuotaConfig
from .memory import InMemoryQuotaStore
from .redis_store import RedisQuotaStore
from .service import Clock, GenerationQuotaService, utcnow
from .store import QuotaStore


def build_store(config: QuotaConfig) -> QuotaStore:
    store = config.store
    if store.backend == "redis":
        client = Redis(
            host=store.redis.host,
            port=store.redis.port,
            password=store.redis.password or None,
            db=store.redis.db,
            socket_timeout=store.redis.socket_timeout,
        )
        return RedisQuotaStore(
            client,
            key=config.quota.record_key,
            max_attempts=store.max_attempts,
            initial_delay=store.initial_delay,
            max_delay=store.max_delay,
        )
    return InMemoryQuotaStore()


def build_service(config: QuotaConfig, clock: Clock = utcnow) -> GenerationQuotaService:
    return GenerationQuotaService(build_store(config), config.quota, clock=clock)
