"""Redis-backed quota store."""

from __future__ import annotations

import asyncio
import json
import random
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.asyncio.client import PubSub
from redis.exceptions import NoPermissionError, RedisError, WatchError

from .exceptions import QuotaErrorCodes, QuotaUnavailableError
from .metrics import quota_transaction_retries_total
from .store import (
    Document,
    DocumentListener,
    ErrorListener,
    QuotaStore,
    Subscription,
    UpdateFn,
)

logger = structlog.stdlib.get_logger(__name__)


def _unavailable(e: RedisError, action: str) -> QuotaUnavailableError:
    if isinstance(e, NoPermissionError) or "NOPERM" in str(e):
        return QuotaUnavailableError(
            code=QuotaErrorCodes.PERMISSION_DENIED,
            message=f"Permission denied while trying to {action}",
            cause=e,
        )
    return QuotaUnavailableError(
        code=QuotaErrorCodes.BACKEND_UNAVAILABLE,
        message=f"Redis unavailable while trying to {action}",
        cause=e,
    )


class _RedisSubscription(Subscription):
    def __init__(self, pubsub: PubSub, task: asyncio.Task[None]) -> None:
        self._pubsub = pubsub
        self._task = task

    async def close(self) -> None:
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("quota subscription task failed")
        finally:
            await self._pubsub.aclose()


class RedisQuotaStore(QuotaStore):
    """Store the record as a JSON string under one key.

    Writes use WATCH/MULTI/EXEC and are retried when another client touched
    the key between the read and the commit. Every commit also publishes on
    ``<key>:changes`` so subscribers can re-read the record.
    """

    def __init__(
        self,
        client: Redis,
        key: str,
        max_attempts: int = 5,
        initial_delay: float = 0.01,
        max_delay: float = 0.5,
    ) -> None:
        self._client = client
        self._key = key
        self._channel = f"{key}:changes"
        self._max_attempts = max_attempts
        self._initial_delay = initial_delay
        self._max_delay = max_delay

    @staticmethod
    def _decode(raw: Any) -> Document | None:
        if raw is None:
            return None
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            value = json.loads(raw)
        except ValueError:
            # the service repairs unreadable records
            return {}
        return value if isinstance(value, dict) else {}

    def _delay(self, attempt: int) -> float:
        base = min(self._initial_delay * (2**attempt), self._max_delay)
        return base * (0.9 + random.random() * 0.2)

    async def get(self) -> Document | None:
        try:
            raw = await self._client.get(self._key)
        except RedisError as e:
            raise _unavailable(e, "read the quota record") from e
        return self._decode(raw)

    async def run_transaction(self, update: UpdateFn) -> None:
        for attempt in range(self._max_attempts):
            try:
                async with self._client.pipeline(transaction=True) as pipe:
                    await pipe.watch(self._key)
                    written = update(self._decode(await pipe.get(self._key)))
                    if written is None:
                        await pipe.unwatch()
                        return
                    pipe.multi()
                    pipe.set(self._key, json.dumps(written))
                    pipe.publish(self._channel, "changed")
                    await pipe.execute()
                    return
            except WatchError:
                quota_transaction_retries_total.add(1)
                logger.debug("quota transaction conflict", key=self._key, attempt=attempt + 1)
                if attempt + 1 < self._max_attempts:
                    await asyncio.sleep(self._delay(attempt))
            except RedisError as e:
                raise _unavailable(e, "update the quota record") from e
        logger.warning(
            "quota transaction aborted", key=self._key, attempts=self._max_attempts
        )
        raise QuotaUnavailableError(
            code=QuotaErrorCodes.TRANSACTION_ABORTED,
            message=f"Transaction aborted after {self._max_attempts} attempts due to contention",
        )

    async def subscribe(
        self,
        listener: DocumentListener,
        on_error: ErrorListener | None = None,
    ) -> Subscription:
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        try:
            await pubsub.subscribe(self._channel)
        except RedisError as e:
            await pubsub.aclose()
            raise _unavailable(e, "subscribe to quota changes") from e
        task = asyncio.create_task(self._listen(pubsub, listener, on_error))
        return _RedisSubscription(pubsub, task)

    async def _listen(
        self,
        pubsub: PubSub,
        listener: DocumentListener,
        on_error: ErrorListener | None,
    ) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                document = await self.get()
                try:
                    await listener(document)
                except Exception:
                    logger.exception("quota listener failed", key=self._key)
        except (RedisError, QuotaUnavailableError) as e:
            if isinstance(e, QuotaUnavailableError):
                error = e
            else:
                error = _unavailable(e, "watch quota changes")
            logger.error("quota subscription failed", key=self._key, detail=error.detail)
            if on_error is not None:
                await on_error(error)
