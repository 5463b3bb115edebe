from __future__ import annotations

import pytest

from buildmerge.config import POLICY_ENV_VAR, MergePolicy, default_policy


@pytest.fixture(autouse=True)
def _isolated_policy_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(POLICY_ENV_VAR, raising=False)


@pytest.fixture
def policy() -> MergePolicy:
    return default_policy()


@pytest.fixture
def fixing_policy() -> MergePolicy:
    return default_policy(should_fix=True)
