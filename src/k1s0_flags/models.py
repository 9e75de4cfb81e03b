"""flags データモデル"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from .context import ContextValue, FlagContext
from .exceptions import FeatureFlagError, FeatureFlagErrorCodes


@dataclass(frozen=True)
class BoolDefault:
    """固定の真偽値デフォルト。"""

    value: bool


@dataclass(frozen=True)
class PredicateDefault:
    """コンテキストから真偽値を求めるデフォルト。"""

    predicate: Callable[[FlagContext], bool]


DefaultValue = BoolDefault | PredicateDefault


def to_default_value(value: Any) -> DefaultValue:
    """bool または callable をデフォルト値に変換する。

    Raises:
        FeatureFlagError: どちらでもない値の場合 (INVALID_VALUE)
    """
    if isinstance(value, (BoolDefault, PredicateDefault)):
        return value
    if isinstance(value, bool):
        return BoolDefault(value)
    if callable(value):
        return PredicateDefault(value)
    raise FeatureFlagError(
        FeatureFlagErrorCodes.INVALID_VALUE,
        f"デフォルト値は bool か関数である必要があります: {value!r}",
    )


@dataclass(frozen=True)
class FeatureFlag:
    """フィーチャーフラグ定義。

    conditions の値が None のキーは制約なしとして扱う。
    rollout_percentage が [0, 100] の範囲外ならロールアウトは無効。
    evaluator を指定すると他のすべての規則より優先される。
    """

    default: DefaultValue = field(default_factory=lambda: BoolDefault(False))
    conditions: Mapping[str, ContextValue | None] = field(default_factory=dict)
    rollout_percentage: float | None = None
    description: str = ""
    evaluator: Callable[[FeatureFlag, FlagContext], bool] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "default", to_default_value(self.default))
        object.__setattr__(self, "conditions", MappingProxyType(dict(self.conditions)))

    @property
    def rollout_active(self) -> bool:
        p = self.rollout_percentage
        if isinstance(p, bool) or not isinstance(p, (int, float)):
            return False
        return not math.isnan(p) and 0 <= p <= 100

    def with_default(self, value: Any) -> FeatureFlag:
        """デフォルト値だけを差し替えたフラグを返す。"""
        return replace(self, default=to_default_value(value))

    def copy(self) -> FeatureFlag:
        return replace(self, conditions=dict(self.conditions))


class EvaluationReason:
    """評価理由の定数。"""

    CUSTOM_EVALUATOR: str = "CUSTOM_EVALUATOR"
    CONDITION_MISMATCH: str = "CONDITION_MISMATCH"
    ROLLOUT: str = "ROLLOUT"
    DEFAULT: str = "DEFAULT"
    FLAG_NOT_FOUND: str = "FLAG_NOT_FOUND"


@dataclass
class EvaluationResult:
    """フラグ評価結果。"""

    flag_key: str
    enabled: bool
    reason: str = ""
    bucket: int | None = None
