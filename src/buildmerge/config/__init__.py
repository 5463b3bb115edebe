"""Application configuration helpers."""

from __future__ import annotations

from .env import POLICY_ENV_VAR, optional_env_path, require_env_path
from .errors import ConfigurationError, MissingConfigurationError, PolicyFileError
from .logging import configure_logging
from .policy import (
    DEFAULT_CGO_LIB_NAME,
    DEFAULT_LIB_NAME,
    DEFAULT_PROTOS_NAME,
    DEFAULT_TEST_NAME,
    DEFAULT_XTEST_NAME,
    GAZELLE_DEPS,
    GRPC_COMPILER_LABEL,
    IMPORTS_KEY,
    KNOWN_ARCH,
    KNOWN_OS,
    LEGACY_GO_PROTO_DEF,
    RULES_GO_DEF,
    RULES_GO_PROTO_DEF,
    RULES_PROTO_DEFS,
    KindInfo,
    LoadInfo,
    MergePolicy,
    MergeStage,
    default_kinds,
    default_loads,
    default_policy,
)
from .policy_file import load_policy_file, parse_policy

__all__ = [
    "DEFAULT_CGO_LIB_NAME",
    "DEFAULT_LIB_NAME",
    "DEFAULT_PROTOS_NAME",
    "DEFAULT_TEST_NAME",
    "DEFAULT_XTEST_NAME",
    "GAZELLE_DEPS",
    "GRPC_COMPILER_LABEL",
    "IMPORTS_KEY",
    "KNOWN_ARCH",
    "KNOWN_OS",
    "LEGACY_GO_PROTO_DEF",
    "POLICY_ENV_VAR",
    "RULES_GO_DEF",
    "RULES_GO_PROTO_DEF",
    "RULES_PROTO_DEFS",
    "ConfigurationError",
    "KindInfo",
    "LoadInfo",
    "MergePolicy",
    "MergeStage",
    "MissingConfigurationError",
    "PolicyFileError",
    "configure_logging",
    "default_kinds",
    "default_loads",
    "default_policy",
    "load_policy_file",
    "optional_env_path",
    "parse_policy",
    "require_env_path",
]
