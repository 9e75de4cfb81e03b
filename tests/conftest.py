"""flags テスト共通設定"""

import logging
from collections.abc import Generator

import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """テストごとに structlog とライブラリロガーの設定を初期状態に戻す。"""
    yield
    structlog.reset_defaults()
    library_logger = logging.getLogger("k1s0_flags")
    library_logger.handlers = []
    library_logger.setLevel(logging.NOTSET)
    library_logger.propagate = True
