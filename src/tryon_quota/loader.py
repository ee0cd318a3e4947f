"""Load QuotaConfig from YAML files and TRYON_QUOTA_* environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import QuotaConfig
from .exceptions import ConfigError, QuotaErrorCodes

ENV_PREFIX = "TRYON_QUOTA_"

# environment variable suffix -> dotted config path
ENV_OVERRIDES: dict[str, str] = {
    "LIMIT": "quota.limit",
    "ANCHOR_HOUR": "quota.anchor_hour",
    "TIMEZONE": "quota.timezone",
    "RECORD_KEY": "quota.record_key",
    "STORE_BACKEND": "store.backend",
    "STORE_MAX_ATTEMPTS": "store.max_attempts",
    "REDIS_HOST": "store.redis.host",
    "REDIS_PORT": "store.redis.port",
    "REDIS_PASSWORD": "store.redis.password",
    "REDIS_DB": "store.redis.db",
    "LOG_LEVEL": "log.level",
    "LOG_FORMAT": "log.format",
}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict with ``override`` merged into ``base``; lists are replaced."""
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(
            code=QuotaErrorCodes.READ_FILE,
            message=f"Cannot read quota config {path}",
            cause=e,
        ) from e
    except yaml.YAMLError as e:
        raise ConfigError(
            code=QuotaErrorCodes.PARSE_YAML,
            message=f"Quota config {path} is not valid YAML",
            cause=e,
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            code=QuotaErrorCodes.PARSE_YAML,
            message=f"Quota config {path} must be a mapping, got {type(data).__name__}",
        )
    return data


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Nested config overrides from ``TRYON_QUOTA_*`` variables.

    Values are passed as strings; pydantic coerces them. An empty
    ``TRYON_QUOTA_TIMEZONE`` selects the host's local zone.
    """
    overrides: dict[str, Any] = {}
    for suffix, dotted in ENV_OVERRIDES.items():
        raw = environ.get(ENV_PREFIX + suffix)
        if raw is None:
            continue
        value: Any = raw
        if suffix == "TIMEZONE" and raw == "":
            value = None
        *parents, leaf = dotted.split(".")
        node = overrides
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value
    return overrides


def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in item['loc'])}: {item['msg']}" for item in error.errors()
    )


def load(
    base_path: Path | None = None,
    env_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> QuotaConfig:
    """Build the quota configuration.

    Precedence, lowest first: defaults, ``base_path``, ``env_path`` (skipped
    when the file does not exist), ``TRYON_QUOTA_*`` variables from
    ``environ`` (``os.environ`` when None).

    Raises:
        ConfigError: unreadable file, invalid YAML, or a value out of range
    """
    data: dict[str, Any] = {}
    if base_path is not None:
        data = _read_yaml(base_path)
    if env_path is not None and env_path.exists():
        data = deep_merge(data, _read_yaml(env_path))
    data = deep_merge(data, env_overrides(os.environ if environ is None else environ))
    try:
        return QuotaConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            code=QuotaErrorCodes.VALIDATION,
            message=f"Invalid quota config: {_describe(e)}",
            cause=e,
        ) from e
