"""FeatureFlagRegistry 実装"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from .context import FlagContext, merge_contexts
from .engine import evaluate_detail
from .exceptions import FeatureFlagError, FeatureFlagErrorCodes
from .hashing import assign_bucket
from .models import EvaluationReason, EvaluationResult, FeatureFlag

if TYPE_CHECKING:
    from .storage import FlagStore

logger = structlog.stdlib.get_logger(__name__)

PRODUCTION = "production"

LocalContext = FlagContext | Mapping[str, Any] | None


class FeatureFlagRegistry:
    """インメモリのフィーチャーフラグレジストリ。

    フラグ定義とグローバルコンテキストを保持し、評価のたびに
    グローバル + ローカルのコンテキストをマージしてエンジンに渡す。
    更新は新しい dict への差し替えで行うため、評価は常に一貫した
    スナップショットを参照する。
    """

    def __init__(
        self,
        flags: Mapping[str, FeatureFlag] | None = None,
        global_context: LocalContext = None,
    ) -> None:
        self._lock = threading.Lock()
        self._flags: dict[str, FeatureFlag] = dict(flags or {})
        self._global_context = FlagContext.coerce(global_context).copy()

    def get(self, name: str) -> FeatureFlag | None:
        """フラグを取得する。存在しなければ None。"""
        return self._flags.get(name)

    def list(self) -> dict[str, FeatureFlag]:
        """全フラグのコピーを返す。"""
        return {name: flag.copy() for name, flag in self._flags.items()}

    def set(self, name: str, flag: FeatureFlag) -> None:
        """フラグを追加または丸ごと置き換える。"""
        with self._lock:
            flags = dict(self._flags)
            flags[name] = flag
            self._flags = flags
        logger.debug("feature flag set", flag_key=name)

    def delete(self, name: str) -> None:
        """フラグを削除する。存在しなければ何もしない。"""
        with self._lock:
            if name not in self._flags:
                return
            flags = dict(self._flags)
            del flags[name]
            self._flags = flags
        logger.debug("feature flag deleted", flag_key=name)

    def set_global_context(self, context: LocalContext) -> None:
        with self._lock:
            self._global_context = FlagContext.coerce(context).copy()

    def get_global_context(self) -> FlagContext:
        return self._global_context.copy()

    def evaluate(
        self, name: str, local_context: LocalContext = None
    ) -> EvaluationResult:
        """フラグを評価し、理由付きの結果を返す。

        Raises:
            FeatureFlagError: フラグが存在せず、environment が production でない場合
        """
        context = merge_contexts(
            self._global_context, FlagContext.coerce(local_context)
        )
        flag = self._flags.get(name)
        if flag is None:
            if context.environment == PRODUCTION:
                logger.warning(
                    "feature flag not found",
                    flag_key=name,
                    environment=context.environment,
                )
                return EvaluationResult(
                    flag_key=name,
                    enabled=False,
                    reason=EvaluationReason.FLAG_NOT_FOUND,
                )
            raise FeatureFlagError(
                FeatureFlagErrorCodes.FLAG_NOT_FOUND,
                f"フラグが見つかりません: {name}",
            )
        return evaluate_detail(flag, context, name)

    def is_enabled(self, name: str, local_context: LocalContext = None) -> bool:
        """フラグが有効か判定する。"""
        return self.evaluate(name, local_context).enabled

    def assign_user_to_bucket(self, user_id: str, flag_name: str) -> int:
        """ユーザーのロールアウトバケット (0-99) を返す。"""
        return assign_bucket(user_id, flag_name)

    def load_from(self, store: FlagStore) -> None:
        """ストアのフラグで現在のフラグを置き換える。"""
        flags = store.load_flags()
        with self._lock:
            self._flags = flags
        logger.info("feature flags loaded", count=len(flags))

    def save_to(self, store: FlagStore) -> None:
        """現在のフラグをストアに保存する。"""
        store.save_flags(self._flags)
