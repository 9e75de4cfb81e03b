"""フラグ評価コンテキスト"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any

ContextValue = str | int | float | bool

RESERVED_KEYS: tuple[str, ...] = (
    "user_id",
    "user_role",
    "environment",
    "region",
    "percentage",
)


@dataclass(frozen=True)
class FlagContext:
    """フラグ評価コンテキスト。

    予約属性は型付きフィールド、それ以外のキーは ``attributes`` に保持する。
    ``None`` は「値なし」を表す。インスタンスは不変。
    """

    user_id: str | None = None
    user_role: str | None = None
    environment: str | None = None
    region: str | None = None
    percentage: float | None = None
    attributes: Mapping[str, ContextValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        clean = {k: v for k, v in self.attributes.items() if v is not None}
        for key in RESERVED_KEYS:
            # 予約キーは attributes に置かない
            clean.pop(key, None)
        object.__setattr__(self, "attributes", MappingProxyType(clean))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FlagContext:
        """辞書からコンテキストを生成する。予約キー以外は attributes に入る。"""
        reserved = {k: data[k] for k in RESERVED_KEYS if data.get(k) is not None}
        extra = {
            k: v for k, v in data.items() if k not in RESERVED_KEYS and v is not None
        }
        return cls(**reserved, attributes=extra)

    @classmethod
    def coerce(cls, value: FlagContext | Mapping[str, Any] | None) -> FlagContext:
        if value is None:
            return cls()
        if isinstance(value, FlagContext):
            return value
        return cls.from_dict(value)

    def get(self, key: str) -> ContextValue | None:
        """属性値を取得する。存在しなければ None。"""
        if key in RESERVED_KEYS:
            return getattr(self, key)
        return self.attributes.get(key)

    def to_dict(self) -> dict[str, ContextValue]:
        """値を持つキーだけを含む新しい辞書を返す。"""
        data: dict[str, ContextValue] = {}
        for f in fields(self):
            if f.name == "attributes":
                continue
            value = getattr(self, f.name)
            if value is not None:
                data[f.name] = value
        data.update(self.attributes)
        return data

    def copy(self) -> FlagContext:
        return replace(self, attributes=dict(self.attributes))


def merge_contexts(
    global_context: FlagContext, local_context: FlagContext
) -> FlagContext:
    """グローバルとローカルのコンテキストを浅くマージした新しいコンテキストを返す。

    両方にあるキーはローカルが優先。値のないキーは結果に含めない。
    """
    merged = global_context.to_dict()
    merged.update(local_context.to_dict())
    return FlagContext.from_dict(merged)
