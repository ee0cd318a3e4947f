"""設定型定義（pydantic BaseModel）"""

from __future__ import annotations

from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator


class QuotaSection(BaseModel):
    """日次クォータ設定。"""

    limit: int = Field(default=100, ge=1)
    anchor_hour: int = Field(default=1, ge=0, le=23)
    timezone: str | None = None  # None はホストのローカルタイムゾーン
    record_key: str = "global_state/generation_counter"

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                ZoneInfo(value)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ValueError(f"unknown timezone: {value}") from e
        return value

    def tzinfo(self) -> ZoneInfo | None:
        """リセット時刻を解釈するタイムゾーン。"""
        return ZoneInfo(self.timezone) if self.timezone else None


class RedisSection(BaseModel):
    """Redis 接続設定。"""

    host: str = "localhost"
    port: int = Field(default=6379, ge=1, le=65535)
    password: str = ""
    db: int = 0
    socket_timeout: float = 5.0


class StoreSection(BaseModel):
    """ストア設定。"""

    backend: Literal["memory", "redis"] = "memory"
    max_attempts: int = Field(default=5, ge=1)
    initial_delay: float = Field(default=0.01, ge=0.0)
    max_delay: float = Field(default=0.5, ge=0.0)
    redis: RedisSection = Field(default_factory=RedisSection)


class LogSection(BaseModel):
    """ログ設定。"""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class QuotaConfig(BaseModel):
    """設定全体。"""

    quota: QuotaSection = Field(default_factory=QuotaSection)
    store: StoreSection = Field(default_factory=StoreSection)
    log: LogSection = Field(default_factory=LogSection)
