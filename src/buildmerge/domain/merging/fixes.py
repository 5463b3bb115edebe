"""One-time rewrites of rules written by older generator versions.

``fix_file`` runs before merging so that old rules can be matched with
freshly generated ones. Low-risk rewrites always run. Rewrites that squash
or delete rules only run when the policy allows fixing; otherwise they log
what they would have done. ``fix_loads`` should run afterwards.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

from buildmerge.config.policy import (
    DEFAULT_CGO_LIB_NAME,
    DEFAULT_LIB_NAME,
    DEFAULT_PROTOS_NAME,
    DEFAULT_TEST_NAME,
    DEFAULT_XTEST_NAME,
    GRPC_COMPILER_LABEL,
    LEGACY_GO_PROTO_DEF,
    RULES_GO_DEF,
)
from buildmerge.domain.rule import DEFAULT_DIRECTIVE_PREFIX
from buildmerge.domain.syntax import ListExpr

from .errors import MalformedExpressionError, MissingRepositoryError
from .platform import PlatformNames
from .rules import squash_rules
from .values import flatten_expr

if TYPE_CHECKING:
    from buildmerge.config.policy import MergePolicy
    from buildmerge.domain.rule import File, Rule

log = getLogger(__name__)

GO_RULE_KINDS: Final = frozenset({"go_library", "go_binary", "go_test", "go_proto_library", "go_grpc_library"})


def fix_file(file: File, policy: MergePolicy) -> None:
    migrate_library_embed(file)
    migrate_grpc_compilers(file)
    flatten_srcs(file)
    squash_cgo_library(file, policy)
    squash_xtest(file, policy)
    remove_legacy_proto(file, policy)


def migrate_library_embed(file: File) -> None:
    """Turn ``library = x`` into ``embed = [x]`` unless kept or ``embed`` exists."""

    for rule in file.rules:
        if rule.kind not in GO_RULE_KINDS:
            continue
        library = rule.attr("library")
        if library is None or rule.attr_kept("library") or rule.attr("embed") is not None:
            continue
        rule.del_attr("library")
        rule.set_attr("embed", ListExpr(items=[library]))


def migrate_grpc_compilers(file: File) -> None:
    """Rewrite ``go_grpc_library`` as ``go_proto_library`` with the gRPC compiler."""

    for rule in file.rules:
        if rule.kind != "go_grpc_library" or rule.should_keep() or rule.attr("compilers") is not None:
            continue
        rule.set_kind("go_proto_library")
        rule.set_attr("compilers", [GRPC_COMPILER_LABEL])


def flatten_srcs(file: File) -> None:
    """Replace list + select ``srcs`` of Go rules with one sorted list."""

    for rule in file.rules:
        if rule.kind not in GO_RULE_KINDS or rule.attr_kept("srcs"):
            continue
        srcs = rule.attr("srcs")
        if srcs is None:
            continue
        flat = flatten_expr(srcs)
        if flat is not srcs:
            rule.set_attr("srcs", flat)


def squash_cgo_library(file: File, policy: MergePolicy) -> None:
    """Fold the default ``cgo_library`` into the default ``go_library``.

    Without a ``go_library`` the ``cgo_library`` is renamed into one.
    """

    cgo_library: Rule | None = None
    go_library: Rule | None = None
    for rule in file.rules:
        if rule.kind == "cgo_library" and rule.name == DEFAULT_CGO_LIB_NAME and not rule.should_keep():
            if cgo_library is not None:
                log.warning(
                    "%s: when fixing existing file, multiple cgo_library rules with default name found", file.path
                )
                continue
            cgo_library = rule
        elif rule.kind == "go_library" and rule.name == DEFAULT_LIB_NAME:
            if go_library is not None:
                log.warning(
                    "%s: when fixing existing file, multiple go_library rules with default name found", file.path
                )
            go_library = rule

    if cgo_library is None:
        return
    if not policy.should_fix:
        log.warning("%s: cgo_library is deprecated. Run with fixing enabled to squash with go_library.", file.path)
        return

    if go_library is None:
        cgo_library.set_kind("go_library")
        cgo_library.set_name(DEFAULT_LIB_NAME)
        cgo_library.set_attr("cgo", True)
        return

    try:
        squash_rules(cgo_library, go_library, _platforms(policy))
    except MalformedExpressionError as exc:
        log.warning("%s: could not squash cgo_library into go_library: %s", file.path, exc)
        return
    go_library.del_attr("embed")
    go_library.set_attr("cgo", True)
    cgo_library.delete()


def squash_xtest(file: File, policy: MergePolicy) -> None:
    """Fold the default external test into the default internal test."""

    itest: Rule | None = None
    xtest: Rule | None = None
    for rule in file.rules:
        if rule.kind != "go_test":
            continue
        if rule.name == DEFAULT_TEST_NAME:
            itest = rule
        elif rule.name == DEFAULT_XTEST_NAME:
            xtest = rule

    if xtest is None or xtest.should_keep() or (itest is not None and itest.should_keep()):
        return
    if not policy.should_fix:
        action = "rename to" if itest is None else "squash with"
        log.warning(
            "%s: %s is no longer necessary. Run with fixing enabled to %s %s.",
            file.path,
            DEFAULT_XTEST_NAME,
            action,
            DEFAULT_TEST_NAME,
        )
        return

    if itest is None:
        xtest.set_name(DEFAULT_TEST_NAME)
        return
    try:
        squash_rules(xtest, itest, _platforms(policy))
    except MalformedExpressionError as exc:
        log.warning("%s: could not squash %s: %s", file.path, DEFAULT_XTEST_NAME, exc)
        return
    xtest.delete()


def remove_legacy_proto(file: File, policy: MergePolicy) -> None:
    """Delete loads of the old proto macros and the filegroups they used.

    ``go_proto_library`` rules are deleted too, but only if a legacy load was
    found; they are regenerated in the new form.
    """

    proto_loads = [load for load in file.loads if load.name == LEGACY_GO_PROTO_DEF]
    proto_filegroups: list[Rule] = []
    proto_rules: list[Rule] = []
    for rule in file.rules:
        if rule.kind == "filegroup" and rule.name == DEFAULT_PROTOS_NAME:
            proto_filegroups.append(rule)
        if rule.kind == "go_proto_library":
            proto_rules.append(rule)

    if not proto_loads and not proto_filegroups:
        return
    if not policy.should_fix:
        log.warning("%s: go_proto_library.bzl is deprecated. Run with fixing enabled to replace old rules.", file.path)
        return

    for load in proto_loads:
        load.delete()
    for rule in proto_filegroups:
        rule.delete()
    if proto_loads:
        for rule in proto_rules:
            rule.delete()


def fix_workspace(file: File) -> None:
    """Stop loading ``go_repository`` from rules_go; ``fix_loads`` adds the new source."""

    for load in file.loads:
        if load.name == RULES_GO_DEF:
            load.remove("go_repository")
            if load.is_empty():
                load.delete()


def check_gazelle_loaded(file: File, repo: str = "bazel_gazelle", prefix: str = DEFAULT_DIRECTIVE_PREFIX) -> None:
    """Raise if the file loads from ``@repo`` without declaring that repository.

    A ``repo`` directive naming it counts as a declaration.
    """

    if not any(load.name.startswith(f"@{repo}//") for load in file.loads):
        return
    if any(rule.name == repo for rule in file.rules):
        return
    for directive in file.directives:
        if directive.key == "repo" and directive.value.split()[:1] == [repo]:
            return
    raise MissingRepositoryError(
        f"{file.path}: {repo} is not declared. Declare the repository, or add a comment "
        f"'# {prefix}repo {repo}' if it is declared inside a macro."
    )


def _platforms(policy: MergePolicy) -> PlatformNames:
    return PlatformNames(os=policy.known_os, arch=policy.known_arch)

