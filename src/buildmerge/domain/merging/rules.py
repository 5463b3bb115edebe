"""Merge or squash one rule into another."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from buildmerge.domain.syntax import attach_comments

from .contracts import DiagnosticCode, MergeDiagnostic, log_diagnostic
from .errors import MalformedExpressionError
from .platform import DEFAULT_PLATFORMS, PlatformNames
from .values import merge_exprs, squash_exprs

if TYPE_CHECKING:
    from collections.abc import Collection

    from buildmerge.domain.rule import Rule
    from buildmerge.domain.syntax import Expr

    from .contracts import DiagnosticSink

log = getLogger(__name__)


def merge_rule(
    gen: Rule,
    old: Rule,
    mergeable: Collection[str],
    *,
    non_empty: Collection[str] = frozenset(),
    platforms: PlatformNames = DEFAULT_PLATFORMS,
    sink: DiagnosticSink = log_diagnostic,
    path: str = "",
) -> Rule | None:
    """Merge ``gen`` into ``old`` in place.

    A kept ``old`` is returned untouched. Mergeable attributes that are not
    kept are reconciled with ``merge_exprs``; attributes only in ``gen`` are
    copied; every other attribute of ``old`` is left alone. Private
    attributes always come from ``gen``.

    Returns ``old``, or ``None`` when the merged rule is empty and should be
    deleted by the caller.
    """

    if old.should_keep():
        return old

    gen_keys = set(gen.attr_keys())
    for key in old.attr_keys():
        if key in gen_keys or key not in mergeable or old.attr_kept(key):
            continue
        _merge_attr(None, old, key, sorted_strings=old.attr_sorted(key), platforms=platforms, sink=sink, path=path)

    for key in gen.attr_keys():
        gen_value = gen.attr(key)
        if old.attr_assign(key) is None:
            old.set_attr(key, gen_value, sorted_strings=gen.attr_sorted(key))
        elif key in mergeable and not old.attr_kept(key):
            _merge_attr(
                gen_value, old, key, sorted_strings=gen.attr_sorted(key), platforms=platforms, sink=sink, path=path
            )

    for key in gen.private_attr_keys():
        old.set_private_attr(key, gen.private_attr(key))

    if old.is_empty(non_empty):
        log.debug("%s: %s(%s) is empty after merge", path, old.kind, old.name)
        return None
    return old


def _merge_attr(
    gen_value: Expr | None,
    old: Rule,
    key: str,
    *,
    sorted_strings: bool,
    platforms: PlatformNames,
    sink: DiagnosticSink,
    path: str,
) -> None:
    try:
        merged = merge_exprs(gen_value, old.attr(key), platforms)
    except MalformedExpressionError as exc:
        sink(
            MergeDiagnostic(
                code=DiagnosticCode.MALFORMED_EXPRESSION,
                message=f"could not merge expression: {exc}",
                path=path,
                kind=old.kind,
                name=old.name,
                attr=key,
            )
        )
        return
    if merged is None:
        old.del_attr(key)
    else:
        old.set_attr(key, merged, sorted_strings=sorted_strings)


def squash_rules(src: Rule, dst: Rule, platforms: PlatformNames = DEFAULT_PLATFORMS) -> None:
    """Fold ``src`` into ``dst`` without discarding information from either.

    Raises ``MalformedExpressionError`` if a value cannot be squashed; in
    that case neither rule is modified.
    """

    if dst.should_keep():
        return

    updates: dict[str, Expr | None] = {}
    for key in src.attr_keys():
        src_value = src.attr(key)
        if dst.attr_assign(key) is None:
            updates[key] = src_value
        elif not dst.attr_kept(key):
            updates[key] = squash_exprs(src_value, dst.attr(key), platforms)

    for key, value in updates.items():
        if value is None:
            dst.del_attr(key)
        else:
            dst.set_attr(key, value, sorted_strings=dst.attr_sorted(key) or src.attr_sorted(key))
    comments = src.call.comments
    attach_comments(dst.call, before=comments.before, suffix=comments.suffix, after=comments.after)
