"""フラグ評価エンジン"""

from __future__ import annotations

from collections.abc import Mapping

from .context import ContextValue, FlagContext
from .hashing import assign_bucket
from .models import (
    BoolDefault,
    EvaluationReason,
    EvaluationResult,
    FeatureFlag,
    PredicateDefault,
)

# ロールアウト用のキーで、等値条件としては扱わない
ROLLOUT_CONDITION_KEYS = frozenset({"percentage"})


def _values_equal(expected: ContextValue, actual: ContextValue | None) -> bool:
    if actual is None:
        return False
    if isinstance(expected, bool) or isinstance(actual, bool):
        return type(expected) is type(actual) and expected == actual
    return expected == actual


def conditions_match(
    conditions: Mapping[str, ContextValue | None], context: FlagContext
) -> bool:
    """条件がすべてコンテキストと一致するか判定する。"""
    for key, expected in conditions.items():
        if key in ROLLOUT_CONDITION_KEYS or expected is None:
            continue
        if not _values_equal(expected, context.get(key)):
            return False
    return True


def rollout_applies(flag: FeatureFlag, context: FlagContext) -> bool:
    """ロールアウト判定を行うべきか。user_id がなければデフォルト値に委ねる。"""
    user_id = context.user_id
    return flag.rollout_active and user_id is not None and str(user_id) != ""


def evaluate_detail(
    flag: FeatureFlag, context: FlagContext, flag_key: str
) -> EvaluationResult:
    """フラグを評価し、理由付きの結果を返す。

    評価順序:
        1. カスタム evaluator
        2. 条件フィルタ (不一致なら False)
        3. ロールアウト (bucket < rollout_percentage)
        4. デフォルト値
    """
    if flag.evaluator is not None:
        return EvaluationResult(
            flag_key=flag_key,
            enabled=bool(flag.evaluator(flag, context)),
            reason=EvaluationReason.CUSTOM_EVALUATOR,
        )

    if not conditions_match(flag.conditions, context):
        return EvaluationResult(
            flag_key=flag_key,
            enabled=False,
            reason=EvaluationReason.CONDITION_MISMATCH,
        )

    if rollout_applies(flag, context):
        user_bucket = assign_bucket(str(context.user_id), flag_key)
        return EvaluationResult(
            flag_key=flag_key,
            enabled=user_bucket < float(flag.rollout_percentage or 0),
            reason=EvaluationReason.ROLLOUT,
            bucket=user_bucket,
        )

    match flag.default:
        case BoolDefault(value=value):
            enabled = value
        case PredicateDefault(predicate=predicate):
            enabled = bool(predicate(context))
    return EvaluationResult(
        flag_key=flag_key,
        enabled=enabled,
        reason=EvaluationReason.DEFAULT,
    )


def evaluate(flag: FeatureFlag, context: FlagContext, flag_key: str) -> bool:
    """フラグを評価して真偽値を返す。"""
    return evaluate_detail(flag, context, flag_key).enabled
