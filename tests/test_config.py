"""フラグ定義ファイル読み込みのユニットテスト"""

from pathlib import Path

import pytest
from k1s0_flags import FeatureFlag, FeatureFlagError, FeatureFlagErrorCodes
from k1s0_flags.config import build_registry, load, merge_layers

BASE_YAML = """\
global_context:
  environment: staging
  region: us-east
flags:
  beta:
    default_value: true
    rollout_percentage: 50
  admin-only:
    default_value: false
    conditions:
      user_role: admin
"""


def test_load_flags(tmp_path: Path) -> None:
    """フラグ定義ファイルの読み込み。"""
    config_file = tmp_path / "flags.yaml"
    config_file.write_text(BASE_YAML)
    config = load(config_file)
    assert config.global_context == {"environment": "staging", "region": "us-east"}
    assert config.flags["beta"].default_value is True
    assert config.flags["beta"].rollout_percentage == 50
    assert config.flags["admin-only"].conditions == {"user_role": "admin"}


def test_load_empty_file(tmp_path: Path) -> None:
    """空ファイルは空の設定。"""
    config_file = tmp_path / "flags.yaml"
    config_file.write_text("")
    config = load(config_file)
    assert config.flags == {}
    assert config.global_context == {}


def test_load_with_env_override(tmp_path: Path) -> None:
    """環境別ファイルはフラグ単位で置き換え、コンテキストはキー単位でマージすること。"""
    base_file = tmp_path / "base.yaml"
    base_file.write_text(BASE_YAML)
    env_file = tmp_path / "prod.yaml"
    env_file.write_text(
        "global_context:\n"
        "  environment: production\n"
        "flags:\n"
        "  admin-only:\n"
        "    default_value: true\n"
    )
    config = load(base_file, env_file)
    assert config.global_context == {"environment": "production", "region": "us-east"}
    assert config.flags["admin-only"].default_value is True
    assert config.flags["admin-only"].conditions == {}
    assert config.flags["beta"].rollout_percentage == 50


def test_load_env_not_exists(tmp_path: Path) -> None:
    """env_path が存在しない場合は base のみ使用。"""
    base_file = tmp_path / "base.yaml"
    base_file.write_text(BASE_YAML)
    config = load(base_file, tmp_path / "nonexistent.yaml")
    assert set(config.flags) == {"beta", "admin-only"}


def test_merge_layers_does_not_mutate_inputs() -> None:
    """merge_layers は入力を変更しないこと。"""
    base = {"flags": {"a": {"default_value": True}}, "global_context": {"region": "eu"}}
    override = {"flags": {"b": {"default_value": False}}}
    merged = merge_layers(base, override)
    assert set(merged["flags"]) == {"a", "b"}
    assert set(base["flags"]) == {"a"}
    assert merged["global_context"] == {"region": "eu"}


def test_load_file_not_found(tmp_path: Path) -> None:
    """存在しないファイルで READ_FILE_ERROR。"""
    with pytest.raises(FeatureFlagError) as exc_info:
        load(tmp_path / "missing.yaml")
    assert exc_info.value.code == FeatureFlagErrorCodes.READ_FILE


def test_load_invalid_yaml(tmp_path: Path) -> None:
    """不正 YAML で PARSE_ERROR。"""
    bad_file = tmp_path / "bad.yaml"
    bad_file.write_text("flags: {invalid: yaml: content:\n")
    with pytest.raises(FeatureFlagError) as exc_info:
        load(bad_file)
    assert exc_info.value.code == FeatureFlagErrorCodes.PARSE


def test_load_validation_error(tmp_path: Path) -> None:
    """バリデーション失敗で VALIDATION_ERROR。"""
    bad_file = tmp_path / "bad.yaml"
    bad_file.write_text("flags:\n  beta:\n    default_value: [1, 2]\n")
    with pytest.raises(FeatureFlagError) as exc_info:
        load(bad_file)
    assert exc_info.value.code == FeatureFlagErrorCodes.VALIDATION


def test_load_non_mapping(tmp_path: Path) -> None:
    """トップレベルがマッピングでなければ VALIDATION_ERROR。"""
    bad_file = tmp_path / "list.yaml"
    bad_file.write_text("- beta\n- gamma\n")
    with pytest.raises(FeatureFlagError) as exc_info:
        load(bad_file)
    assert exc_info.value.code == FeatureFlagErrorCodes.VALIDATION


def test_build_registry(tmp_path: Path) -> None:
    """設定からレジストリを生成できること。"""
    config_file = tmp_path / "flags.yaml"
    config_file.write_text(BASE_YAML)
    registry = build_registry(load(config_file))
    assert registry.get_global_context().environment == "staging"
    assert registry.get("admin-only") == FeatureFlag(
        default=False, conditions={"user_role": "admin"}
    )
    assert registry.is_enabled("admin-only", {"user_role": "admin"}) is False
    with pytest.raises(FeatureFlagError):
        registry.is_enabled("ghost")


def test_null_global_context_value_is_absent(tmp_path: Path) -> None:
    """global_context の null は値なしとして扱うこと。"""
    config_file = tmp_path / "flags.yaml"
    config_file.write_text(
        "global_context:\n  environment: staging\n  region: ~\n"
        "flags:\n  eu-only:\n    default_value: true\n    conditions:\n      region: eu\n"
    )
    config = load(config_file)
    assert config.global_context["region"] is None
    registry = build_registry(config)
    assert registry.get_global_context().region is None
    assert registry.get_global_context().to_dict() == {"environment": "staging"}
    assert registry.is_enabled("eu-only") is False
    assert registry.is_enabled("eu-only", {"region": "eu"}) is True
