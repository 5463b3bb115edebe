"""Shared merge result and diagnostic types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    from collections.abc import Callable

    from buildmerge.domain.rule import Rule

log = getLogger(__name__)


class MatchKind(StrEnum):
    """How a generated rule was paired with an existing rule."""

    NAME = "name"
    ATTRIBUTE = "attribute"
    KIND = "kind"


@dataclass(slots=True, frozen=True)
class RuleMatch:
    rule: Rule
    kind: MatchKind
    attr: str | None = None


class DiagnosticCode(StrEnum):
    AMBIGUOUS_MATCH = "ambiguous-match"
    KIND_CONFLICT = "kind-conflict"
    MALFORMED_EXPRESSION = "malformed-expression"
    STRUCTURAL_INVARIANT = "structural-invariant"


@dataclass(slots=True, frozen=True, kw_only=True)
class MergeDiagnostic:
    """A recoverable problem found while merging one file."""

    code: DiagnosticCode
    message: str
    path: str = ""
    kind: str = ""
    name: str = ""
    attr: str | None = None

    def __str__(self) -> str:
        where = self.path or "<file>"
        target = f"{self.kind}({self.name})" if self.kind else ""
        if self.attr:
            target = f"{target}.{self.attr}"
        return f"{where}: {target}: {self.message}" if target else f"{where}: {self.message}"


DiagnosticSink: TypeAlias = "Callable[[MergeDiagnostic], None]"


def log_diagnostic(diagnostic: MergeDiagnostic) -> None:
    log.warning("%s [%s]", diagnostic, diagnostic.code)


@dataclass(slots=True, kw_only=True)
class MergeReport:
    """What a file merge did."""

    path: str = ""
    ignored: bool = False
    merged: list[Rule] = field(default_factory=list["Rule"])
    inserted: list[Rule] = field(default_factory=list["Rule"])
    deleted: list[Rule] = field(default_factory=list["Rule"])
    diagnostics: list[MergeDiagnostic] = field(default_factory=list[MergeDiagnostic])

    @property
    def changed(self) -> bool:
        return bool(self.merged or self.inserted or self.deleted)


class DiagnosticCollector:
    """Sink that records diagnostics on a report and forwards them."""

    def __init__(self, report: MergeReport, forward: DiagnosticSink | None = None) -> None:
        self._report = report
        self._forward = forward or log_diagnostic

    def __call__(self, diagnostic: MergeDiagnostic) -> None:
        self._report.diagnostics.append(diagnostic)
        self._forward(diagnostic)
