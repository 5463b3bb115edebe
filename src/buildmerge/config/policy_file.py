"""Read merge policy overrides from a TOML file.

Example::

    directive_prefix = "gazelle:"

    [kinds.my_library]
    match_attrs = ["importpath"]
    non_empty_attrs = ["srcs", "deps"]
    mergeable_attrs = ["srcs"]
    resolve_attrs = ["deps"]

    [[loads]]
    name = "@my_rules//:defs.bzl"
    symbols = ["my_library"]

Kinds and loads listed in the file are added to the defaults, replacing
entries with the same kind or load name.
"""

from __future__ import annotations

import tomllib
from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import PolicyFileError
from .policy import KindInfo, LoadInfo, MergePolicy, default_policy

if TYPE_CHECKING:
    from pathlib import Path

log = getLogger(__name__)


class PolicyFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class KindModel(PolicyFileModel):
    match_any: bool = False
    match_attrs: list[str] = Field(default_factory=list)
    non_empty_attrs: list[str] = Field(default_factory=list)
    mergeable_attrs: list[str] = Field(default_factory=list)
    resolve_attrs: list[str] = Field(default_factory=list)
    substitute_attrs: list[str] = Field(default_factory=list)

    def to_kind_info(self) -> KindInfo:
        return KindInfo(
            match_any=self.match_any,
            match_attrs=tuple(self.match_attrs),
            non_empty_attrs=frozenset(self.non_empty_attrs),
            mergeable_attrs=frozenset(self.mergeable_attrs),
            resolve_attrs=frozenset(self.resolve_attrs),
            substitute_attrs=frozenset(self.substitute_attrs),
        )


class LoadModel(PolicyFileModel):
    name: str = Field(min_length=1)
    symbols: list[str] = Field(min_length=1)
    after: list[str] = Field(default_factory=list)

    def to_load_info(self) -> LoadInfo:
        return LoadInfo(name=self.name, symbols=tuple(sorted(self.symbols)), after=tuple(self.after))


class PolicyDocument(PolicyFileModel):
    rules_proto: bool = False
    directive_prefix: str | None = None
    known_os: list[str] | None = None
    known_arch: list[str] | None = None
    kinds: dict[str, KindModel] = Field(default_factory=dict)
    loads: list[LoadModel] = Field(default_factory=list)

    def apply(self, base: MergePolicy) -> MergePolicy:
        policy = base.with_kinds({kind: model.to_kind_info() for kind, model in self.kinds.items()})
        policy = policy.with_loads(model.to_load_info() for model in self.loads)
        overrides: dict[str, object] = {}
        if self.directive_prefix is not None:
            overrides["directive_prefix"] = self.directive_prefix
        if self.known_os is not None:
            overrides["known_os"] = frozenset(self.known_os)
        if self.known_arch is not None:
            overrides["known_arch"] = frozenset(self.known_arch)
        return replace(policy, **overrides)


def parse_policy(text: str, *, source: str = "<policy>", should_fix: bool = False) -> MergePolicy:
    try:
        raw = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise PolicyFileError(f"{source}: invalid TOML: {exc}") from exc
    try:
        document = PolicyDocument.model_validate(raw)
    except ValidationError as exc:
        raise PolicyFileError(f"{source}: invalid merge policy: {exc}") from exc
    base = default_policy(rules_proto=document.rules_proto, should_fix=should_fix)
    policy = document.apply(base)
    log.debug("Loaded policy from %s: %d kinds, %d load sources", source, len(policy.kinds), len(policy.loads))
    return policy


def load_policy_file(path: Path, *, should_fix: bool = False) -> MergePolicy:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PolicyFileError(f"{path}: cannot read policy file: {exc}") from exc
    return parse_policy(text, source=str(path), should_fix=should_fix)
