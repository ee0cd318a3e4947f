"""structlog ベースのロガー設定"""

from __future__ import annotations

import logging
import sys

import structlog

from .config import LogSection


def new_logger(section: LogSection | None = None) -> structlog.stdlib.BoundLogger:
    """LogSection に従って structlog を設定し、ライブラリ用ロガーを返す。

    各モジュールは ``structlog.stdlib.get_logger(__name__)`` で取得したロガーを
    使うため、ここでの設定がそのまま反映される。

    Args:
        section: ログ設定。None の場合はデフォルト（INFO, json）

    Returns:
        ``logger`` に "tryon_quota" を束縛した BoundLogger
    """
    section = section or LogSection()
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, section.level.upper(), logging.INFO),
    )

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if section.format == "json":
        processors += [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.stdlib.get_logger("tryon_quota")
