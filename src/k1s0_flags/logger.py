"""structlog ベースのロガー設定"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

LOGGER_NAME = "k1s0_flags"


def _renderer(format: str) -> structlog.types.Processor:
    if format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=False)


def new_logger(
    level: str = "INFO",
    format: str = "json",
    name: str | None = None,
    stream: TextIO | None = None,
) -> structlog.stdlib.BoundLogger:
    """flags ライブラリのログ出力を設定し、ロガーを返す。

    ルートロガーには触れず、"k1s0_flags" 配下の stdlib ロガーにだけ
    ハンドラを付ける。structlog 以外から出たレコードも同じ形式で出力される。

    Args:
        level: ログレベル ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        format: 出力形式 ("json" or "text")
        name: ロガー名。省略時は "k1s0_flags"
        stream: 出力先。省略時は標準出力

    Returns:
        設定済みの structlog.stdlib.BoundLogger
    """
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(format),
            ],
        )
    )

    library_logger = logging.getLogger(LOGGER_NAME)
    library_logger.handlers = [handler]
    library_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    library_logger.propagate = False

    return structlog.stdlib.get_logger(name or LOGGER_NAME)
