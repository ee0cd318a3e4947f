"""OpenTelemetry クォータメトリクス定義"""

from __future__ import annotations

from opentelemetry import metrics

_meter = metrics.get_meter("tryon_quota", version="0.1.0")

quota_consume_total = _meter.create_counter(
    name="quota_consume_total",
    description="Consume attempts by outcome (granted, reset, exhausted, unavailable)",
    unit="1",
)

quota_transaction_retries_total = _meter.create_counter(
    name="quota_transaction_retries_total",
    description="Optimistic transaction retries caused by concurrent writers",
    unit="1",
)
