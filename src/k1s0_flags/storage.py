"""フラグ定義の永続化"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, StrictFloat, StrictInt, ValidationError

from .exceptions import FeatureFlagError, FeatureFlagErrorCodes
from .models import BoolDefault, FeatureFlag


class SerializedFlag(BaseModel):
    """保存用のフラグ表現。

    関数のデフォルト値は保存できないため default_value は None になる。
    """

    default_value: bool | None = None
    conditions: dict[str, bool | int | float | str | None] = Field(default_factory=dict)
    rollout_percentage: StrictInt | StrictFloat | None = None
    description: str = ""


def _stored_percentage(value: Any) -> int | float | None:
    # 数値以外は保存時に落とし、読み込み後もロールアウト無効のままにする
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def serialize_flag(flag: FeatureFlag) -> SerializedFlag:
    default_value = flag.default.value if isinstance(flag.default, BoolDefault) else None
    return SerializedFlag(
        default_value=default_value,
        conditions=dict(flag.conditions),
        rollout_percentage=_stored_percentage(flag.rollout_percentage),
        description=flag.description,
    )


def deserialize_flag(data: SerializedFlag) -> FeatureFlag:
    return FeatureFlag(
        default=BoolDefault(bool(data.default_value)),
        conditions=dict(data.conditions),
        rollout_percentage=data.rollout_percentage,
        description=data.description,
    )


def _parse_flags(text: str, source: str) -> dict[str, SerializedFlag]:
    try:
        raw: Any = json.loads(text) if text.strip() else {}
    except json.JSONDecodeError as e:
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.PARSE,
            message=f"Failed to parse flag data: {source}",
            cause=e,
        ) from e
    if not isinstance(raw, dict):
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.VALIDATION,
            message=f"Flag data must be a JSON object: {source}",
        )
    try:
        return {name: SerializedFlag.model_validate(value) for name, value in raw.items()}
    except ValidationError as e:
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.VALIDATION,
            message=f"Flag validation failed: {e}",
            cause=e,
        ) from e


def _dump_flags(flags: Mapping[str, SerializedFlag]) -> str:
    return json.dumps(
        {name: flag.model_dump(mode="json") for name, flag in flags.items()},
        ensure_ascii=False,
        indent=2,
        sort_keys=True,
    )


class FlagStore(ABC):
    """フラグ定義ストア抽象基底クラス。"""

    @abstractmethod
    def load(self) -> dict[str, SerializedFlag]:
        """保存済みの全フラグを読み込む。"""
        ...

    @abstractmethod
    def save(self, flags: Mapping[str, SerializedFlag]) -> None:
        """全フラグを保存する。既存の内容は置き換える。"""
        ...

    def clear(self) -> None:
        """全フラグを削除する。"""
        self.save({})

    def load_flags(self) -> dict[str, FeatureFlag]:
        return {name: deserialize_flag(data) for name, data in self.load().items()}

    def save_flags(self, flags: Mapping[str, FeatureFlag]) -> None:
        self.save({name: serialize_flag(flag) for name, flag in flags.items()})

    def get_item(self, key: str) -> FeatureFlag | None:
        """キーに対応するフラグを取得する。存在しなければ None。"""
        data = self.load().get(key)
        return deserialize_flag(data) if data is not None else None

    def set_item(self, key: str, flag: FeatureFlag) -> None:
        flags = self.load()
        flags[key] = serialize_flag(flag)
        self.save(flags)

    def remove_item(self, key: str) -> None:
        flags = self.load()
        if flags.pop(key, None) is not None:
            self.save(flags)

    def _seed(self, initial_flags: Mapping[str, FeatureFlag] | None) -> None:
        if not initial_flags:
            return
        # 保存済みのフラグが初期値より優先される
        merged = {name: serialize_flag(flag) for name, flag in initial_flags.items()}
        merged.update(self.load())
        self.save(merged)


class InMemoryFlagStore(FlagStore):
    """テスト用インメモリフラグストア。JSON テキストとして保持する。"""

    def __init__(self, initial_flags: Mapping[str, FeatureFlag] | None = None) -> None:
        self._data: str | None = None
        self._seed(initial_flags)

    def load(self) -> dict[str, SerializedFlag]:
        if self._data is None:
            return {}
        return _parse_flags(self._data, "<memory>")

    def save(self, flags: Mapping[str, SerializedFlag]) -> None:
        self._data = _dump_flags(flags)

    def clear(self) -> None:
        self._data = None


class JsonFileFlagStore(FlagStore):
    """全フラグを 1 つの JSON ファイルに保存するストア。"""

    def __init__(
        self,
        path: Path,
        initial_flags: Mapping[str, FeatureFlag] | None = None,
    ) -> None:
        self._path = Path(path)
        self._seed(initial_flags)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, SerializedFlag]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as e:
            raise FeatureFlagError(
                code=FeatureFlagErrorCodes.READ_FILE,
                message=f"Failed to read flag file: {self._path}",
                cause=e,
            ) from e
        return _parse_flags(text, str(self._path))

    def save(self, flags: Mapping[str, SerializedFlag]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(_dump_flags(flags), encoding="utf-8")
        except OSError as e:
            raise FeatureFlagError(
                code=FeatureFlagErrorCodes.WRITE_FILE,
                message=f"Failed to write flag file: {self._path}",
                cause=e,
            ) from e

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise FeatureFlagError(
                code=FeatureFlagErrorCodes.WRITE_FILE,
                message=f"Failed to remove flag file: {self._path}",
                cause=e,
            ) from e
