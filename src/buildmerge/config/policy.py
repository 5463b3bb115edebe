"""Per-kind merge policy and known load sources.

Policies are immutable values built by ``default_policy()`` (or by
``load_policy_file``) and passed explicitly into the merge entry points.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

KNOWN_OS: Final = (
    "android",
    "darwin",
    "dragonfly",
    "freebsd",
    "linux",
    "netbsd",
    "openbsd",
    "plan9",
    "solaris",
    "windows",
)
KNOWN_ARCH: Final = (
    "386",
    "amd64",
    "arm",
    "arm64",
    "ppc64",
    "ppc64le",
    "mips",
    "mipsle",
    "mips64",
    "mips64le",
)

DEFAULT_LIB_NAME: Final = "go_default_library"
DEFAULT_TEST_NAME: Final = "go_default_test"
DEFAULT_XTEST_NAME: Final = "go_default_xtest"
DEFAULT_CGO_LIB_NAME: Final = "cgo_default_library"
DEFAULT_PROTOS_NAME: Final = "go_default_library_protos"
GRPC_COMPILER_LABEL: Final = "@io_bazel_rules_go//proto:go_grpc"

RULES_GO_DEF: Final = "@io_bazel_rules_go//go:def.bzl"
RULES_GO_PROTO_DEF: Final = "@io_bazel_rules_go//proto:def.bzl"
LEGACY_GO_PROTO_DEF: Final = "@io_bazel_rules_go//proto:go_proto_library.bzl"
GAZELLE_DEPS: Final = "@bazel_gazelle//:deps.bzl"
RULES_PROTO_DEFS: Final = "@rules_proto//proto:defs.bzl"

# Keys carried in private attributes between generation and resolution.
IMPORTS_KEY: Final = "_gazelle_imports"


class MergeStage(StrEnum):
    """Which attributes a merge pass may touch."""

    GENERATE = "generate"
    RESOLVE = "resolve"
    ALL = "all"


@dataclass(frozen=True, slots=True, kw_only=True)
class KindInfo:
    """Merge behaviour for one rule kind."""

    match_any: bool = False
    match_attrs: tuple[str, ...] = ()
    non_empty_attrs: frozenset[str] = frozenset()
    mergeable_attrs: frozenset[str] = frozenset()
    resolve_attrs: frozenset[str] = frozenset()
    substitute_attrs: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True, kw_only=True)
class LoadInfo:
    """A load source and the symbols it provides.

    ``after`` names calls a newly created load must follow.
    """

    name: str
    symbols: tuple[str, ...]
    after: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class MergePolicy:
    kinds: Mapping[str, KindInfo] = field(default_factory=lambda: MappingProxyType({}))
    loads: tuple[LoadInfo, ...] = ()
    known_os: frozenset[str] = frozenset(KNOWN_OS)
    known_arch: frozenset[str] = frozenset(KNOWN_ARCH)
    directive_prefix: str = "gazelle:"
    should_fix: bool = False

    def kind_info(self, kind: str) -> KindInfo:
        return self.kinds.get(kind, _EMPTY_KIND)

    def mergeable_attrs(self, stage: MergeStage = MergeStage.ALL) -> dict[str, frozenset[str]]:
        """Per-kind attributes a merge at ``stage`` may rewrite."""

        result: dict[str, frozenset[str]] = {}
        for kind, info in self.kinds.items():
            match stage:
                case MergeStage.GENERATE:
                    attrs = info.mergeable_attrs
                case MergeStage.RESOLVE:
                    attrs = info.resolve_attrs
                case MergeStage.ALL:
                    attrs = info.mergeable_attrs | info.resolve_attrs
            if attrs:
                result[kind] = attrs
        return result

    def non_empty_attrs(self) -> dict[str, frozenset[str]]:
        return {kind: info.non_empty_attrs for kind, info in self.kinds.items() if info.non_empty_attrs}

    def known_symbols(self) -> dict[str, str]:
        """Symbol -> load source. A symbol listed twice belongs to the later source."""

        symbols: dict[str, str] = {}
        for load in self.loads:
            for symbol in load.symbols:
                symbols[symbol] = load.name
        return symbols

    def with_kinds(self, kinds: Mapping[str, KindInfo]) -> MergePolicy:
        """Copy of this policy with ``kinds`` added or replacing existing entries."""

        merged = dict(self.kinds)
        merged.update(kinds)
        return replace(self, kinds=MappingProxyType(merged))

    def with_loads(self, loads: Iterable[LoadInfo]) -> MergePolicy:
        """Copy of this policy with ``loads`` replacing sources of the same name."""

        by_name = {load.name: load for load in self.loads}
        order = [load.name for load in self.loads]
        for load in loads:
            if load.name not in by_name:
                order.append(load.name)
            by_name[load.name] = load
        return replace(self, loads=tuple(by_name[name] for name in order))


_EMPTY_KIND: Final = KindInfo()

_GO_COMMON: Final = frozenset({"srcs", "cgo", "clinkopts", "copts", "embed"})


def default_kinds() -> dict[str, KindInfo]:
    """Kind table for the Go and proto rule set."""

    return {
        "go_library": KindInfo(
            match_attrs=("importpath",),
            non_empty_attrs=frozenset({"srcs", "deps", "embed"}),
            mergeable_attrs=_GO_COMMON | {"importpath", "importmap"},
            resolve_attrs=frozenset({"deps"}),
            substitute_attrs=frozenset({"embed"}),
        ),
        "go_binary": KindInfo(
            match_any=True,
            non_empty_attrs=frozenset({"srcs", "deps", "embed"}),
            mergeable_attrs=_GO_COMMON,
            resolve_attrs=frozenset({"deps"}),
            substitute_attrs=frozenset({"embed"}),
        ),
        "go_test": KindInfo(
            non_empty_attrs=frozenset({"srcs", "deps", "embed"}),
            mergeable_attrs=_GO_COMMON,
            resolve_attrs=frozenset({"deps"}),
            substitute_attrs=frozenset({"embed"}),
        ),
        "go_proto_library": KindInfo(
            match_attrs=("importpath",),
            non_empty_attrs=frozenset({"proto"}),
            mergeable_attrs=_GO_COMMON | {"importpath", "importmap", "proto", "compilers"},
            resolve_attrs=frozenset({"deps"}),
            substitute_attrs=frozenset({"proto"}),
        ),
        "proto_library": KindInfo(
            non_empty_attrs=frozenset({"srcs", "deps"}),
            mergeable_attrs=frozenset({"srcs"}),
            resolve_attrs=frozenset({"deps"}),
        ),
        "filegroup": KindInfo(
            non_empty_attrs=frozenset({"srcs"}),
            mergeable_attrs=frozenset({"srcs"}),
        ),
        "go_repository": KindInfo(
            match_attrs=("importpath",),
            mergeable_attrs=frozenset(
                {"commit", "importpath", "remote", "sha256", "strip_prefix", "tag", "type", "urls", "vcs"}
            ),
        ),
    }


def default_loads(*, rules_proto: bool = False) -> tuple[LoadInfo, ...]:
    """Known load sources in the order new load statements are created."""

    loads = [
        LoadInfo(
            name=RULES_GO_DEF,
            symbols=("cgo_library", "go_binary", "go_library", "go_prefix", "go_repository", "go_test"),
        ),
        LoadInfo(name=RULES_GO_PROTO_DEF, symbols=("go_grpc_library", "go_proto_library")),
        LoadInfo(
            name=GAZELLE_DEPS,
            symbols=("go_repository",),
            after=("go_rules_dependencies", "go_register_toolchains", "gazelle_dependencies"),
        ),
    ]
    if rules_proto:
        loads.append(LoadInfo(name=RULES_PROTO_DEFS, symbols=("proto_library",)))
    return tuple(loads)


def default_policy(*, rules_proto: bool = False, should_fix: bool = False) -> MergePolicy:
    return MergePolicy(
        kinds=MappingProxyType(default_kinds()),
        loads=default_loads(rules_proto=rules_proto),
        should_fix=should_fix,
    )
