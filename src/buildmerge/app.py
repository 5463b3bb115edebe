"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from buildmerge.adapters.jsontree import from_file, read_document, to_file, to_rules, write_document
from buildmerge.config import POLICY_ENV_VAR, MergeStage, default_policy, load_policy_file, optional_env_path
from buildmerge.domain.merging import (
    IGNORE_DIRECTIVE,
    MergeReport,
    check_gazelle_loaded,
    fix_file,
    fix_loads,
    fix_workspace,
    merge_file,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from buildmerge.config import MergePolicy
    from buildmerge.domain.merging import DiagnosticSink
    from buildmerge.domain.rule import File, Rule

log = getLogger(__name__)


def resolve_policy(policy_path: Path | None = None, *, should_fix: bool = False) -> MergePolicy:
    """Policy from ``policy_path``, else from ``BUILDMERGE_POLICY``, else the built-in one."""

    path = policy_path or optional_env_path(POLICY_ENV_VAR)
    if path is None:
        return default_policy(should_fix=should_fix)
    log.info("Using merge policy %s", path)
    return load_policy_file(path, should_fix=should_fix)


def merge_rules_into_file(
    file: File,
    gen_rules: Sequence[Rule],
    empty_rules: Sequence[Rule],
    policy: MergePolicy,
    *,
    stage: MergeStage = MergeStage.ALL,
    sink: DiagnosticSink | None = None,
) -> MergeReport:
    """Fix, merge, reconcile loads and sync ``file`` in place.

    A file carrying the ignore directive is returned untouched.
    """

    if _ignored(file):
        return MergeReport(path=file.path, ignored=True)
    fix_file(file, policy)
    file.sync()
    report = merge_file(file, empty_rules, gen_rules, policy.mergeable_attrs(stage), policy, sink=sink)
    if report.ignored:
        return report
    fix_loads(file, policy.loads)
    file.sync()
    return report


def merge_descriptor(
    *,
    old_path: Path,
    gen_path: Path,
    empty_path: Path | None = None,
    output_path: Path | None = None,
    policy: MergePolicy | None = None,
    stage: MergeStage = MergeStage.ALL,
) -> MergeReport:
    """Merge the rules stored at ``gen_path`` into the descriptor at ``old_path``.

    The result is written to ``output_path``, or back to ``old_path``. An
    ignored file is never rewritten.
    """

    effective_policy = policy or resolve_policy()
    file = to_file(read_document(old_path), effective_policy.directive_prefix)
    gen_rules = to_rules(read_document(gen_path))
    empty_rules = to_rules(read_document(empty_path)) if empty_path is not None else []
    log.info(
        "Merging %d generated and %d empty rules into %s (stage=%s)",
        len(gen_rules),
        len(empty_rules),
        old_path,
        stage,
    )

    report = merge_rules_into_file(file, gen_rules, empty_rules, effective_policy, stage=stage)
    if report.ignored:
        return report

    write_document(from_file(file), output_path or old_path)
    log.info(
        "Finished merge of %s: merged=%d, inserted=%d, deleted=%d, diagnostics=%d",
        old_path,
        len(report.merged),
        len(report.inserted),
        len(report.deleted),
        len(report.diagnostics),
    )
    return report


def fix_descriptor_loads(
    path: Path,
    *,
    output_path: Path | None = None,
    policy: MergePolicy | None = None,
    workspace: bool = False,
) -> File:
    """Reconcile the loads of one descriptor; ``workspace`` also applies the workspace fixups."""

    effective_policy = policy or resolve_policy()
    file = to_file(read_document(path), effective_policy.directive_prefix)
    if _ignored(file):
        return file
    if workspace:
        fix_workspace(file)
        file.sync()
    fix_loads(file, effective_policy.loads)
    file.sync()
    if workspace:
        check_gazelle_loaded(file, prefix=effective_policy.directive_prefix)
    write_document(from_file(file), output_path or path)
    log.info("Fixed loads of %s: %d load statements", path, len(file.loads))
    return file


def _ignored(file: File) -> bool:
    if file.directive(IGNORE_DIRECTIVE) is None:
        return False
    log.info("%s: file has the ignore directive; left untouched", file.path)
    return True
