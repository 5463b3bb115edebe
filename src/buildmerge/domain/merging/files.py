"""Merge generated and empty rules into an existing file."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from buildmerge.domain.label import is_local_reference

from .contracts import DiagnosticCode, DiagnosticCollector, MergeDiagnostic, MergeReport
from .errors import AmbiguousMatchError, MatchError, StructuralInvariantError
from .match import find_match
from .platform import PlatformNames, map_expr_strings
from .rules import merge_rule

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from buildmerge.config.policy import MergePolicy
    from buildmerge.domain.rule import File, Rule

    from .contracts import DiagnosticSink, RuleMatch

log = getLogger(__name__)

IGNORE_DIRECTIVE = "ignore"


def merge_file(
    old_file: File,
    empty_rules: Sequence[Rule],
    gen_rules: Sequence[Rule],
    mergeable: Mapping[str, frozenset[str]],
    policy: MergePolicy,
    *,
    sink: DiagnosticSink | None = None,
) -> MergeReport:
    """Merge ``empty_rules`` and ``gen_rules`` into ``old_file`` in place.

    1. Each empty rule is merged into its match; matches left empty are
       deleted and the file is synced.
    2. Each generated rule is matched against the remaining rules. When a
       match has a different name, same-package references to the generated
       name are rewritten to the existing one in every generated rule.
    3. Matched rules are merged in place; unmatched ones are appended.

    Rules whose match is ambiguous or conflicting are skipped and reported.
    A file carrying the ``ignore`` directive is left untouched. The caller
    syncs the file afterwards.
    """

    report = MergeReport(path=old_file.path)
    if old_file.directive(IGNORE_DIRECTIVE) is not None:
        log.info("%s: skipping merge, file has the ignore directive", old_file.path)
        report.ignored = True
        return report

    emit = DiagnosticCollector(report, sink)
    platforms = PlatformNames(os=policy.known_os, arch=policy.known_arch)

    def merge(gen: Rule, old: Rule) -> Rule | None:
        return merge_rule(
            gen,
            old,
            mergeable.get(gen.kind, frozenset()),
            non_empty=policy.kind_info(old.kind).non_empty_attrs,
            platforms=platforms,
            sink=emit,
            path=old_file.path,
        )

    for empty in empty_rules:
        matched = _match(old_file.rules, empty, policy, emit, old_file.path)
        if matched is None:
            continue
        if merge(empty, matched.rule) is None:
            matched.rule.delete()
            report.deleted.append(matched.rule)
    old_file.sync()

    matches: list[RuleMatch | None] = []
    failed: set[int] = set()
    substitutions: dict[str, str] = {}
    for position, gen in enumerate(gen_rules):
        try:
            matched = find_match(old_file.rules, gen, policy)
        except MatchError as exc:
            _report_match_error(exc, emit, old_file.path)
            failed.add(position)
            matches.append(None)
            continue
        matches.append(matched)
        if matched is not None and gen.name and matched.rule.name != gen.name:
            substitutions[gen.name] = matched.rule.name

    if substitutions:
        for gen in gen_rules:
            substitute_rule(gen, substitutions, policy, emit, old_file.path)

    for position, (gen, matched) in enumerate(zip(gen_rules, matches, strict=True)):
        if position in failed:
            continue
        if matched is None:
            gen.insert(old_file)
            report.inserted.append(gen)
            continue
        if merge(gen, matched.rule) is None:
            matched.rule.delete()
            report.deleted.append(matched.rule)
        else:
            report.merged.append(matched.rule)

    log.debug(
        "%s: merged %d, inserted %d, deleted %d rules",
        old_file.path,
        len(report.merged),
        len(report.inserted),
        len(report.deleted),
    )
    return report


def substitute_rule(
    rule: Rule,
    substitutions: Mapping[str, str],
    policy: MergePolicy,
    sink: DiagnosticSink,
    path: str = "",
) -> None:
    """Rewrite ``:name`` references in the kind's reference attributes."""

    def rename(value: str) -> str:
        if not is_local_reference(value):
            return value
        target = substitutions.get(value.removeprefix(":"))
        return f":{target}" if target is not None else value

    for key in sorted(policy.kind_info(rule.kind).substitute_attrs):
        expr = rule.attr(key)
        if expr is None:
            continue
        try:
            mapped = map_expr_strings(expr, rename)
        except StructuralInvariantError as exc:
            sink(
                MergeDiagnostic(
                    code=DiagnosticCode.STRUCTURAL_INVARIANT,
                    message=str(exc),
                    path=path,
                    kind=rule.kind,
                    name=rule.name,
                    attr=key,
                )
            )
            continue
        if mapped is None:
            rule.del_attr(key)
        else:
            rule.set_attr(key, mapped, sorted_strings=rule.attr_sorted(key))


def _match(
    candidates: Sequence[Rule],
    target: Rule,
    policy: MergePolicy,
    sink: DiagnosticSink,
    path: str,
) -> RuleMatch | None:
    try:
        return find_match(candidates, target, policy)
    except MatchError as exc:
        _report_match_error(exc, sink, path)
        return None


def _report_match_error(exc: MatchError, sink: DiagnosticSink, path: str) -> None:
    code = DiagnosticCode.AMBIGUOUS_MATCH if isinstance(exc, AmbiguousMatchError) else DiagnosticCode.KIND_CONFLICT
    sink(MergeDiagnostic(code=code, message=str(exc), path=path, kind=exc.kind, name=exc.name))
