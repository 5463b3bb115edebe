from __future__ import annotations

import pytest

from buildmerge.domain.merging import (
    MalformedExpressionError,
    flatten_expr,
    merge_dict,
    merge_exprs,
    merge_list,
    squash_exprs,
)
from buildmerge.domain.merging.values import ListSquasher
from buildmerge.domain.syntax import (
    BinaryExpr,
    CallExpr,
    DictExpr,
    Ident,
    ListExpr,
    StringExpr,
    attach_comments,
    mark_keep,
)
from buildmerge.domain.value import DEFAULT_CONDITION

from tests.support.syntax import plus, s, select, select_cases, strings, values

LINUX = "@io_bazel_rules_go//go/platform:linux"
DARWIN = "@io_bazel_rules_go//go/platform:darwin"
AMD64 = "@io_bazel_rules_go//go/platform:amd64"


def _dict(expr: CallExpr) -> DictExpr:
    arg = expr.args[0]
    assert isinstance(arg, DictExpr)
    return arg


def test_merge_list_keeps_marked_elements_and_adds_generated_ones() -> None:
    old = strings("a.go", s("b.go", keep=True))
    gen = strings("a.go", "c.go")

    merged = merge_list(gen, old)

    assert merged is not None
    assert values(merged) == ["a.go", "b.go", "c.go"]
    assert set(values(merged)) == {"a.go", "b.go", "c.go"}
    assert merged.items[1].keep
    assert merged.force_multiline


def test_merge_list_drops_stale_elements() -> None:
    merged = merge_list(strings("new.go"), strings("stale.go", "new.go"))

    assert values(merged) == ["new.go"]


def test_merge_list_preserves_comments_of_old_elements() -> None:
    old_item = attach_comments(s("a.go"), suffix=["# generated elsewhere"])

    merged = merge_list(strings("a.go"), strings(old_item))

    assert merged is not None
    assert merged.items[0] is old_item


def test_merge_list_deduplicates() -> None:
    merged = merge_list(strings("a", "a", "b"), strings("b", "b"))

    assert values(merged) == ["b", "a"]


def test_merge_list_without_generated_value_keeps_only_marked_elements() -> None:
    assert values(merge_list(None, strings("a", s("b", keep=True)))) == ["b"]
    assert merge_list(None, strings("a")) is None
    assert merge_list(strings("a"), None) is not None


def test_merge_dict_sorts_keys_and_puts_default_last() -> None:
    old = _dict(select({DEFAULT_CONDITION: strings(), LINUX: strings("l.go")}))
    gen = _dict(select({LINUX: strings("l.go"), DARWIN: strings("d.go")}))

    merged = merge_dict(gen, old)

    assert merged is not None
    keys = [entry.key.value for entry in merged.entries if isinstance(entry.key, StringExpr)]
    assert keys == [DARWIN, LINUX, DEFAULT_CONDITION]
    assert merged.force_multiline


def test_merge_dict_without_content_is_none() -> None:
    old = _dict(select({LINUX: strings("l.go"), DEFAULT_CONDITION: strings()}))

    assert merge_dict(None, old) is None


def test_merge_dict_rejects_duplicate_keys() -> None:
    old = _dict(select({LINUX: strings("a")}))
    old.entries.append(old.entries[0])

    with pytest.raises(MalformedExpressionError, match="more than one case"):
        merge_dict(_dict(select({LINUX: strings("a")})), old)


def test_merge_exprs_keeps_marked_conditional_and_default_case() -> None:
    old = select({"linux": strings(s("a.go", keep=True)), DEFAULT_CONDITION: strings()})
    gen = strings("b.go")

    merged = merge_exprs(gen, old)

    assert isinstance(merged, BinaryExpr)
    assert values(merged.x) == ["b.go"]
    assert select_cases(merged.y) == {"linux": ["a.go"], DEFAULT_CONDITION: []}
    assert isinstance(merged.x, ListExpr)
    assert merged.x.force_multiline


def test_merge_exprs_scalars() -> None:
    old_value = s("old")
    new_value = s("new")

    assert merge_exprs(new_value, old_value) is new_value
    assert merge_exprs(None, old_value) is None
    assert merge_exprs(None, None) is None


def test_merge_exprs_returns_marked_old_value() -> None:
    old = mark_keep(strings("a"))

    assert merge_exprs(strings("b"), old) is old


def test_merge_exprs_merges_into_platform_selects() -> None:
    old = plus(strings("a.go"), select({LINUX: strings("l.go", s("keep_l.go", keep=True))}))
    gen = plus(strings("a.go", "b.go"), select({AMD64: strings("x.go")}))

    merged = merge_exprs(gen, old)

    assert isinstance(merged, BinaryExpr)
    assert isinstance(merged.x, BinaryExpr)
    assert values(merged.x.x) == ["a.go", "b.go"]
    assert select_cases(merged.x.y) == {LINUX: ["keep_l.go"]}
    assert select_cases(merged.y) == {AMD64: ["x.go"]}


def test_merge_exprs_rejects_unknown_shapes() -> None:
    glob = CallExpr(func=Ident("glob"), args=[strings("*.go")])

    with pytest.raises(MalformedExpressionError):
        merge_exprs(strings("a.go"), glob)
    with pytest.raises(MalformedExpressionError):
        merge_exprs(strings("a.go"), BinaryExpr(strings("a"), "-", strings("b")))


def test_list_squasher_consolidates_comments() -> None:
    squasher = ListSquasher()
    first = attach_comments(s("b"), before=["# why"])
    second = attach_comments(s("b"), before=["# why"], suffix=["# also"])
    squasher.add(first)
    squasher.add(second)
    squasher.add(s("a"))
    squasher.add(Ident("IGNORED"))

    squashed = squasher.build()

    assert values(squashed) == ["a", "b"]
    assert squashed.items[1].comments.before == ["# why"]
    assert squashed.items[1].comments.suffix == ["# also"]
    assert first.comments.suffix == []


def test_squash_exprs_unions_both_sides() -> None:
    src = plus(strings("b.go"), select({LINUX: strings("l2.go")}))
    dst = plus(strings("a.go"), select({LINUX: strings("l1.go"), DEFAULT_CONDITION: strings()}))

    squashed = squash_exprs(src, dst)

    assert isinstance(squashed, BinaryExpr)
    assert values(squashed.x) == ["a.go", "b.go"]
    assert select_cases(squashed.y) == {LINUX: ["l1.go", "l2.go"], DEFAULT_CONDITION: []}


def test_squash_exprs_keeps_scalar_destination() -> None:
    dst = s("x")

    assert squash_exprs(s("y"), dst) is dst


def test_flatten_expr() -> None:
    expr = plus(strings("b.go", "a.go"), select({LINUX: strings("l.go", "a.go")}))

    assert values(flatten_expr(expr)) == ["a.go", "b.go", "l.go"]


def test_flatten_expr_leaves_non_string_values() -> None:
    expr = ListExpr(items=[Ident("SRCS")])

    assert flatten_expr(expr) is expr
