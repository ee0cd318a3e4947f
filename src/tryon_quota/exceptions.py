"""tryon_quota の例外型定義"""

from __future__ import annotations

from datetime import datetime


class QuotaError(Exception):
    """tryon_quota のエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class QuotaErrorCodes:
    """QuotaError のエラーコード定数。"""

    QUOTA_EXHAUSTED: str = "QUOTA_EXHAUSTED"
    TRANSACTION_ABORTED: str = "TRANSACTION_ABORTED"
    PERMISSION_DENIED: str = "PERMISSION_DENIED"
    BACKEND_UNAVAILABLE: str = "BACKEND_UNAVAILABLE"
    UNEXPECTED_ERROR: str = "UNEXPECTED_ERROR"
    MALFORMED_RECORD: str = "MALFORMED_RECORD"
    INVALID_REQUEST: str = "INVALID_REQUEST"
    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    VALIDATION: str = "VALIDATION_ERROR"


class QuotaExhaustedError(QuotaError):
    """No units left in the current period."""

    def __init__(self, message: str, resets_at: datetime) -> None:
        super().__init__(QuotaErrorCodes.QUOTA_EXHAUSTED, message)
        self.resets_at = resets_at


class QuotaUnavailableError(QuotaError):
    """The store could not complete the operation."""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(code, message, cause)
        self.detail = repr(cause) if cause is not None else message


class MalformedRecordError(QuotaError):
    """Stored record is missing fields or has the wrong shape."""

    def __init__(self, message: str) -> None:
        super().__init__(QuotaErrorCodes.MALFORMED_RECORD, message)


class InvalidGenerationRequestError(QuotaError):
    """Generation request rejected before any unit is consumed."""

    def __init__(self, message: str) -> None:
        super().__init__(QuotaErrorCodes.INVALID_REQUEST, message)


class ConfigError(QuotaError):
    """Configuration could not be loaded."""
