"""Quota data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .exceptions import (
    MalformedRecordError,
    QuotaError,
    QuotaExhaustedError,
    QuotaUnavailableError,
)


@dataclass(frozen=True)
class QuotaRecord:
    """The shared counter record."""

    count: int
    resets_at: datetime

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> QuotaRecord:
        """Parse a stored document. Raises MalformedRecordError."""
        count = document.get("count")
        if isinstance(count, bool) or not isinstance(count, int):
            raise MalformedRecordError(f"count must be an integer, got {count!r}")
        raw = document.get("resets_at")
        if not isinstance(raw, str):
            raise MalformedRecordError(f"resets_at must be a string, got {raw!r}")
        try:
            resets_at = datetime.fromisoformat(raw)
        except ValueError as e:
            raise MalformedRecordError(f"resets_at is not ISO-8601: {raw!r}") from e
        if resets_at.tzinfo is None:
            raise MalformedRecordError(f"resets_at has no timezone: {raw!r}")
        return cls(count=count, resets_at=resets_at.astimezone(timezone.utc))

    def to_document(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "resets_at": self.resets_at.astimezone(timezone.utc).isoformat(),
        }

    def is_expired(self, now: datetime) -> bool:
        return self.resets_at <= now


@dataclass(frozen=True)
class QuotaState:
    """Read-only view of the counter."""

    remaining: int
    resets_at: datetime
    estimated: bool = False


@dataclass(frozen=True)
class ConsumeResult:
    """Outcome of a consume attempt."""

    success: bool
    remaining: int | None = None
    resets_at: datetime | None = None
    error: QuotaError | None = None

    @classmethod
    def granted(cls, record: QuotaRecord) -> ConsumeResult:
        return cls(success=True, remaining=record.count, resets_at=record.resets_at)

    @classmethod
    def failed(cls, error: QuotaError) -> ConsumeResult:
        resets_at = error.resets_at if isinstance(error, QuotaExhaustedError) else None
        return cls(success=False, resets_at=resets_at, error=error)

    @property
    def exhausted(self) -> bool:
        return isinstance(self.error, QuotaExhaustedError)

    @property
    def unavailable(self) -> bool:
        return isinstance(self.error, QuotaUnavailableError)

    @property
    def message(self) -> str | None:
        """Human-readable failure message, None on success."""
        return self.error.message if self.error is not None else None
