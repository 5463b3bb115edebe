"""Merging and squashing of attribute values.

*Merging* reconciles a generated value with an existing one: generated
content wins, except that elements, cases and attributes marked with
``# keep`` survive. *Squashing* unions two existing values without dropping
anything and is used when legacy rules are folded together.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING

from buildmerge.domain.sorting import SimpleValue, simple_value
from buildmerge.domain.syntax import Comments, DictExpr, KeyValueExpr, ListExpr, StringExpr, is_scalar
from buildmerge.domain.value import DEFAULT_CONDITION

from .errors import MalformedExpressionError
from .platform import DEFAULT_PLATFORMS, CompositeExprs, PlatformNames, extract_composite, make_composite_expr

if TYPE_CHECKING:
    from buildmerge.domain.syntax import Expr


def merge_list(gen: ListExpr | None, old: ListExpr | None) -> ListExpr | None:
    """Union of ``gen`` and the kept elements of ``old``.

    Old elements that are kept or also generated stay in place with their
    comments; generated elements not yet present follow in generated order.
    Returns ``None`` if nothing is left.
    """

    if old is None:
        return gen
    if gen is None:
        gen = ListExpr()

    gen_values = {value for value in map(simple_value, gen.items) if value is not None}
    merged: list[Expr] = []
    seen: set[SimpleValue] = set()
    keep_comment = False
    for item in old.items:
        value = simple_value(item)
        if not item.keep and (value is None or value not in gen_values):
            continue
        if not item.keep and value in seen:
            continue
        keep_comment = keep_comment or item.keep
        merged.append(item)
        if value is not None:
            seen.add(value)

    for item in gen.items:
        value = simple_value(item)
        if value is not None:
            if value in seen:
                continue
            seen.add(value)
        merged.append(item)

    if not merged:
        return None
    return ListExpr(items=merged, force_multiline=gen.force_multiline or old.force_multiline or keep_comment)


@dataclass(slots=True)
class _DictEntry:
    key: str
    old: ListExpr | None = None
    gen: ListExpr | None = None
    merged: ListExpr | None = None


def dict_entry(entry: KeyValueExpr) -> tuple[str, ListExpr]:
    if not isinstance(entry.key, StringExpr):
        raise MalformedExpressionError("select keys must be strings")
    if not isinstance(entry.value, ListExpr):
        raise MalformedExpressionError(f"select case {entry.key.value!r} is not a list")
    return entry.key.value, entry.value


def merge_dict(gen: DictExpr | None, old: DictExpr | None) -> DictExpr | None:
    """Merge select cases key by key with ``merge_list``.

    The default case is kept, even when empty, if either input has it, and
    always sorts last. Other keys are sorted. Returns ``None`` when no case
    has content.
    """

    if old is None:
        return gen
    if gen is None:
        gen = DictExpr()

    entries: dict[str, _DictEntry] = {}
    for kv in old.entries:
        key, value = dict_entry(kv)
        if key in entries:
            raise MalformedExpressionError(f"select has more than one case named {key!r}")
        entries[key] = _DictEntry(key, old=value)
    for kv in gen.entries:
        key, value = dict_entry(kv)
        entries.setdefault(key, _DictEntry(key)).gen = value

    keys: list[str] = []
    default = entries.get(DEFAULT_CONDITION)
    for entry in entries.values():
        entry.merged = merge_list(entry.gen, entry.old)
        if entry is default:
            if entry.merged is None:
                entry.merged = ListExpr()
        elif entry.merged is not None:
            keys.append(entry.key)

    if not keys and (default is None or default.merged is None or not default.merged.items):
        return None
    keys.sort()
    if default is not None:
        keys.append(DEFAULT_CONDITION)

    merged_entries = [KeyValueExpr(StringExpr(key), entries[key].merged or ListExpr()) for key in keys]
    return DictExpr(entries=merged_entries, force_multiline=True)


def merge_exprs(gen: Expr | None, old: Expr | None, platforms: PlatformNames = DEFAULT_PLATFORMS) -> Expr | None:
    """Merge a generated attribute value into an existing one.

    ``None`` means the attribute should be removed. Raises
    ``MalformedExpressionError`` when either side is not a scalar or a
    composite list/select value.
    """

    if old is not None and old.keep:
        return old
    if gen is None and (old is None or is_scalar(old)):
        return None
    if gen is not None and is_scalar(gen):
        return gen

    gen_parts = extract_composite(gen, platforms)
    old_parts = extract_composite(old, platforms)
    merged = CompositeExprs(
        generic=merge_list(gen_parts.generic, old_parts.generic),
        os=merge_dict(gen_parts.os, old_parts.os),
        arch=merge_dict(gen_parts.arch, old_parts.arch),
        platform=merge_dict(gen_parts.platform, old_parts.platform),
    )
    return make_composite_expr(merged)


class ListSquasher:
    """Builds a sorted, de-duplicated list of strings.

    Comments of duplicate elements are consolidated onto one copy; the input
    expressions are never modified.
    """

    def __init__(self) -> None:
        self._unique: dict[SimpleValue, Expr] = {}
        self._seen_comments: set[tuple[SimpleValue, str]] = set()

    def add(self, expr: Expr) -> None:
        value = simple_value(expr)
        if value is None:
            return
        unique = self._unique.get(value)
        if unique is None:
            unique = copy.copy(expr)
            unique.comments = Comments(after=list(expr.comments.after))
            self._unique[value] = unique
        for slot in ("before", "suffix"):
            target: list[str] = getattr(unique.comments, slot)
            for token in getattr(expr.comments, slot):
                if (value, token) not in self._seen_comments:
                    target.append(token)
                    self._seen_comments.add((value, token))
        unique.keep = unique.keep or expr.keep

    def build(self) -> ListExpr:
        # plain strings before wrapped values, then lexical
        ordered = sorted(self._unique.items(), key=lambda pair: (bool(pair[0].symbol), pair[0].symbol, pair[0].value))
        return ListExpr(items=[expr for _, expr in ordered])


def flatten_expr(expr: Expr) -> Expr:
    """Flatten a composite of string lists into one sorted, de-duplicated list.

    Anything that is not made only of strings is returned unchanged.
    """

    try:
        parts = extract_composite(expr)
    except MalformedExpressionError:
        return expr

    squasher = ListSquasher()
    lists: list[ListExpr] = []
    if parts.generic is not None:
        lists.append(parts.generic)
    for dict_expr in parts.dicts():
        if dict_expr is None:
            continue
        for entry in dict_expr.entries:
            if not isinstance(entry.value, ListExpr):
                return expr
            lists.append(entry.value)
    for list_expr in lists:
        for item in list_expr.items:
            if not isinstance(item, StringExpr):
                return expr
            squasher.add(item)
    return squasher.build()


def squash_list(x: ListExpr | None, y: ListExpr | None) -> ListExpr | None:
    if x is None:
        return y
    if y is None:
        return x
    squasher = ListSquasher()
    for item in (*x.items, *y.items):
        if not isinstance(item, StringExpr):
            raise MalformedExpressionError("cannot squash a list with non-string elements")
        squasher.add(item)
    squashed = squasher.build()
    squashed.comments = _joined_comments(x.comments, y.comments)
    return squashed


def squash_dict(x: DictExpr | None, y: DictExpr | None) -> DictExpr | None:
    if x is None:
        return y
    if y is None:
        return x

    cases: dict[str, KeyValueExpr] = {}
    for entry in (*x.entries, *y.entries):
        key, value = dict_entry(entry)
        existing = cases.get(key)
        if existing is None:
            cases[key] = copy.copy(entry)
            continue
        _, current = dict_entry(existing)
        existing.value = squash_list(value, current) or ListExpr()

    keys = sorted(key for key in cases if key != DEFAULT_CONDITION)
    if DEFAULT_CONDITION in cases:
        keys.append(DEFAULT_CONDITION)
    squashed = copy.copy(x)
    squashed.comments = _joined_comments(x.comments, y.comments)
    squashed.entries = [cases[key] for key in keys]
    return squashed


def squash_exprs(src: Expr | None, dst: Expr | None, platforms: PlatformNames = DEFAULT_PLATFORMS) -> Expr | None:
    """Union ``src`` into ``dst`` without discarding anything from either."""

    if dst is not None and (dst.keep or is_scalar(dst)):
        return dst
    src_parts = extract_composite(src, platforms)
    dst_parts = extract_composite(dst, platforms)
    squashed = CompositeExprs(
        generic=squash_list(src_parts.generic, dst_parts.generic),
        os=squash_dict(src_parts.os, dst_parts.os),
        arch=squash_dict(src_parts.arch, dst_parts.arch),
        platform=squash_dict(src_parts.platform, dst_parts.platform),
    )
    return make_composite_expr(squashed)


def _joined_comments(x: Comments, y: Comments) -> Comments:
    return Comments(
        before=[*x.before, *y.before],
        suffix=[*x.suffix, *y.suffix],
        after=[*x.after, *y.after],
    )
