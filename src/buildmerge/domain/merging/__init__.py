"""Reconciliation of generated rules with existing descriptor files.

Flow for one file:
1) ``fix_file`` rewrites rules left by older generator versions
2) ``merge_file`` folds empty rules in, then merges or appends generated rules
3) ``fix_loads`` adds and trims load statements to match the symbols used
4) ``File.sync()`` materialises pending insertions and deletions
"""

from __future__ import annotations

from .contracts import (
    DiagnosticCode,
    DiagnosticSink,
    MatchKind,
    MergeDiagnostic,
    MergeReport,
    RuleMatch,
    log_diagnostic,
)
from .errors import (
    AmbiguousMatchError,
    KindConflictError,
    MalformedExpressionError,
    MatchError,
    MergeError,
    MissingRepositoryError,
    StructuralInvariantError,
)
from .files import IGNORE_DIRECTIVE, merge_file, substitute_rule
from .fixes import check_gazelle_loaded, fix_file, fix_workspace
from .loads import fix_load, fix_loads, new_load_index
from .match import find_match
from .platform import CompositeExprs, PlatformNames, extract_composite, make_composite_expr, map_expr_strings
from .rules import merge_rule, squash_rules
from .values import flatten_expr, merge_dict, merge_exprs, merge_list, squash_exprs

__all__ = [
    "IGNORE_DIRECTIVE",
    "AmbiguousMatchError",
    "CompositeExprs",
    "DiagnosticCode",
    "DiagnosticSink",
    "KindConflictError",
    "MalformedExpressionError",
    "MatchError",
    "MatchKind",
    "MergeDiagnostic",
    "MergeError",
    "MergeReport",
    "MissingRepositoryError",
    "PlatformNames",
    "RuleMatch",
    "StructuralInvariantError",
    "check_gazelle_loaded",
    "extract_composite",
    "find_match",
    "fix_file",
    "fix_load",
    "fix_loads",
    "fix_workspace",
    "flatten_expr",
    "log_diagnostic",
    "make_composite_expr",
    "map_expr_strings",
    "merge_dict",
    "merge_exprs",
    "merge_file",
    "merge_list",
    "merge_rule",
    "new_load_index",
    "squash_exprs",
    "squash_rules",
    "substitute_rule",
]
