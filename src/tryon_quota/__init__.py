"""Daily generation quota library for the virtual try-on service."""

from .config import LogSection, QuotaConfig, QuotaSection, RedisSection, StoreSection
from .display import Availability, QuotaMonitor, QuotaView
from .exceptions import (
    ConfigError,
    InvalidGenerationRequestError,
    MalformedRecordError,
    QuotaError,
    QuotaErrorCodes,
    QuotaExhaustedError,
    QuotaUnavailableError,
)
from .factory import build_service, build_store
from .gate import GenerationGate, GenerationOutcome, OutcomeKind
from .loader import deep_merge, load
from .logger import new_logger
from .memory import InMemoryQuotaStore
from .models import ConsumeResult, QuotaRecord, QuotaState
from .redis_store import RedisQuotaStore
from .schedule import format_countdown, format_retry_message, next_reset_at
from .service import GenerationQuotaService
from .store import QuotaStore, Subscription

__all__ = [
    "Availability",
    "ConfigError",
    "ConsumeResult",
    "GenerationGate",
    "GenerationOutcome",
    "GenerationQuotaService",
    "InMemoryQuotaStore",
    "InvalidGenerationRequestError",
    "LogSection",
    "MalformedRecordError",
    "OutcomeKind",
    "QuotaConfig",
    "QuotaError",
    "QuotaErrorCodes",
    "QuotaExhaustedError",
    "QuotaMonitor",
    "QuotaRecord",
    "QuotaSection",
    "QuotaState",
    "QuotaStore",
    "QuotaUnavailableError",
    "QuotaView",
    "RedisQuotaStore",
    "RedisSection",
    "StoreSection",
    "Subscription",
    "build_service",
    "build_store",
    "deep_merge",
    "format_countdown",
    "format_retry_message",
    "load",
    "new_logger",
    "next_reset_at",
]
