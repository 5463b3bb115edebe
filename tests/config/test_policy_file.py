from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from buildmerge.config import PolicyFileError, load_policy_file, parse_policy

if TYPE_CHECKING:
    from pathlib import Path

POLICY = """
directive_prefix = "custom:"
known_os = ["linux", "plan10"]

[kinds.my_library]
match_attrs = ["importpath"]
non_empty_attrs = ["srcs"]
mergeable_attrs = ["srcs"]
resolve_attrs = ["deps"]

[[loads]]
name = "@my_rules//:defs.bzl"
symbols = ["my_library", "my_binary"]
"""


def test_parse_policy_extends_defaults() -> None:
    policy = parse_policy(POLICY, should_fix=True)

    assert policy.should_fix
    assert policy.directive_prefix == "custom:"
    assert policy.known_os == frozenset({"linux", "plan10"})
    assert "go_library" in policy.kinds
    info = policy.kind_info("my_library")
    assert info.match_attrs == ("importpath",)
    assert info.resolve_attrs == frozenset({"deps"})
    assert policy.loads[-1].name == "@my_rules//:defs.bzl"
    assert policy.loads[-1].symbols == ("my_binary", "my_library")


def test_parse_policy_rejects_unknown_keys() -> None:
    with pytest.raises(PolicyFileError, match="invalid merge policy"):
        parse_policy("[kinds.x]\nmergable_attrs = []\n", source="policy.toml")


def test_parse_policy_rejects_invalid_toml() -> None:
    with pytest.raises(PolicyFileError, match="invalid TOML"):
        parse_policy("[kinds\n")


def test_parse_policy_requires_load_symbols() -> None:
    with pytest.raises(PolicyFileError):
        parse_policy('[[loads]]\nname = "@x//:y.bzl"\nsymbols = []\n')


def test_load_policy_file(tmp_path: Path) -> None:
    path = tmp_path / "policy.toml"
    path.write_text(POLICY, encoding="utf-8")

    policy = load_policy_file(path)

    assert not policy.should_fix
    assert "my_library" in policy.kinds


def test_load_policy_file_missing(tmp_path: Path) -> None:
    with pytest.raises(PolicyFileError, match="cannot read policy file"):
        load_policy_file(tmp_path / "missing.toml")
