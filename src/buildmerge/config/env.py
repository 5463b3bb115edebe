"""Environment variable lookups for configuration."""

from __future__ import annotations

import os
from pathlib import Path

from .errors import MissingConfigurationError

POLICY_ENV_VAR = "BUILDMERGE_POLICY"


def optional_env_path(name: str) -> Path | None:
    """Return the path named by ``name``, or ``None`` when unset or blank."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return Path(value.strip())


def require_env_path(name: str) -> Path:
    """Return the path named by ``name`` or raise if it is missing/blank."""

    path = optional_env_path(name)
    if path is None:
        raise MissingConfigurationError(f"Missing configuration for: {name}")
    return path
