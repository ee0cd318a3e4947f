"""Guard paid generation calls with the daily quota."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

import structlog

from .exceptions import InvalidGenerationRequestError, QuotaErrorCodes
from .models import ConsumeResult
from .service import GenerationQuotaService

logger = structlog.stdlib.get_logger(__name__)

T = TypeVar("T")

PERMISSION_DENIED_MESSAGE = (
    "Database permission denied. Please check your database access rules to "
    "ensure they allow writes to the generation counter."
)
UNAVAILABLE_MESSAGE = (
    "The generation counter is temporarily unavailable. Please try again later."
)
INVALID_API_KEY_MESSAGE = (
    "Your API key is not valid. Please ensure the key in your environment is "
    "correct and the image generation API is enabled for your project."
)
BUSY_MESSAGE = (
    "The generation service is currently busy due to high traffic. "
    "Please try again in a moment."
)


class OutcomeKind(str, Enum):
    """How a generation attempt ended."""

    GENERATED = "generated"
    INVALID = "invalid"
    EXHAUSTED = "exhausted"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


@dataclass(frozen=True)
class GenerationOutcome(Generic[T]):
    """Result of ``GenerationGate.run``."""

    kind: OutcomeKind
    output: T | None = None
    error: str | None = None
    consumed: bool = False

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.GENERATED


def _consume_failure_message(result: ConsumeResult) -> str:
    if result.exhausted:
        return result.message or ""
    if result.error is not None and result.error.code == QuotaErrorCodes.PERMISSION_DENIED:
        return PERMISSION_DENIED_MESSAGE
    return UNAVAILABLE_MESSAGE


def generation_error_message(error: Exception) -> str:
    """Map a generation failure to the message shown to the user."""
    text = str(error)
    if "API key not valid" in text:
        return INVALID_API_KEY_MESSAGE
    if "permission-denied" in text or "PERMISSION_DENIED" in text:
        return PERMISSION_DENIED_MESSAGE
    if "rate limit" in text.lower() or "429" in text:
        return BUSY_MESSAGE
    return f"An error occurred during generation: {text}"


class GenerationGate:
    """Validate, consume one unit, then run the paid call once."""

    def __init__(self, service: GenerationQuotaService) -> None:
        self._service = service

    async def run(
        self,
        generate: Callable[[], Awaitable[T]],
        validate: Callable[[], None] | None = None,
    ) -> GenerationOutcome[T]:
        if validate is not None:
            try:
                validate()
            except InvalidGenerationRequestError as e:
                return GenerationOutcome(kind=OutcomeKind.INVALID, error=e.message)

        result = await self._service.try_consume()
        if not result.success:
            kind = OutcomeKind.EXHAUSTED if result.exhausted else OutcomeKind.UNAVAILABLE
            return GenerationOutcome(kind=kind, error=_consume_failure_message(result))

        try:
            output = await generate()
        except Exception as e:
            logger.exception("generation failed after consuming a unit")
            return GenerationOutcome(
                kind=OutcomeKind.FAILED,
                error=generation_error_message(e),
                consumed=True,
            )
        return GenerationOutcome(kind=OutcomeKind.GENERATED, output=output, consumed=True)
