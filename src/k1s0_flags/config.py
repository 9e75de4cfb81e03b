"""YAML のフラグ定義ファイル読み込み"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from .context import FlagContext
from .exceptions import FeatureFlagError, FeatureFlagErrorCodes
from .registry import FeatureFlagRegistry
from .storage import SerializedFlag, deserialize_flag


class FlagsConfig(BaseModel):
    """フラグ定義ファイル全体。"""

    global_context: dict[str, bool | int | float | str | None] = Field(default_factory=dict)
    flags: dict[str, SerializedFlag] = Field(default_factory=dict)


def _read_yaml(path: Path) -> dict[str, Any]:
    """YAML ファイルを読み込む。"""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.READ_FILE,
            message=f"Failed to read flag config file: {path}",
            cause=e,
        ) from e
    try:
        data: Any = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.PARSE,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.VALIDATION,
            message=f"Flag config must be a mapping: {path}",
        )
    return data


def merge_layers(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """base に override を重ねた新しい辞書を返す。

    global_context はキー単位でマージし、flags はフラグ名単位で丸ごと置き換える。
    """
    result: dict[str, Any] = dict(base)
    for section in ("global_context", "flags"):
        if isinstance(override.get(section), dict):
            merged = dict(base.get(section) or {})
            merged.update(override[section])
            result[section] = merged
    return result


def load(base_path: Path, env_path: Path | None = None) -> FlagsConfig:
    """フラグ定義ファイルを読み込んで FlagsConfig を返す。

    base_path: ベース定義ファイルパス（必須）
    env_path: 環境別定義ファイルパス（オプション）。存在する場合はベースに重ねる。
    """
    data = _read_yaml(base_path)
    if env_path is not None and env_path.exists():
        data = merge_layers(data, _read_yaml(env_path))
    try:
        return FlagsConfig.model_validate(data)
    except ValidationError as e:
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.VALIDATION,
            message=f"Flag config validation failed: {e}",
            cause=e,
        ) from e


def build_registry(config: FlagsConfig) -> FeatureFlagRegistry:
    """FlagsConfig から FeatureFlagRegistry を生成する。"""
    return FeatureFlagRegistry(
        flags={name: deserialize_flag(data) for name, data in config.flags.items()},
        global_context=FlagContext.from_dict(config.global_context),
    )
