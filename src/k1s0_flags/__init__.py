"""k1s0 flags library."""

from .config import FlagsConfig, build_registry, load
from .context import FlagContext, merge_contexts
from .engine import evaluate, evaluate_detail
from .exceptions import FeatureFlagError, FeatureFlagErrorCodes
from .hashing import assign_bucket, bucket
from .logger import new_logger
from .models import (
    BoolDefault,
    EvaluationReason,
    EvaluationResult,
    FeatureFlag,
    PredicateDefault,
    to_default_value,
)
from .registry import FeatureFlagRegistry
from .storage import (
    FlagStore,
    InMemoryFlagStore,
    JsonFileFlagStore,
    SerializedFlag,
    deserialize_flag,
    serialize_flag,
)

__all__ = [
    "BoolDefault",
    "EvaluationReason",
    "EvaluationResult",
    "FeatureFlag",
    "FeatureFlagError",
    "FeatureFlagErrorCodes",
    "FeatureFlagRegistry",
    "FlagContext",
    "FlagStore",
    "FlagsConfig",
    "InMemoryFlagStore",
    "JsonFileFlagStore",
    "PredicateDefault",
    "SerializedFlag",
    "assign_bucket",
    "bucket",
    "build_registry",
    "deserialize_flag",
    "evaluate",
    "evaluate_detail",
    "load",
    "merge_contexts",
    "new_logger",
    "serialize_flag",
    "to_default_value",
]
