from __future__ import annotations

import pytest

from buildmerge.domain.merging import (
    CompositeExprs,
    MalformedExpressionError,
    PlatformNames,
    StructuralInvariantError,
    extract_composite,
    make_composite_expr,
    map_expr_strings,
)
from buildmerge.domain.syntax import BinaryExpr, CallExpr, Ident, ListExpr
from buildmerge.domain.value import DEFAULT_CONDITION

from tests.support.syntax import plus, s, select, select_cases, strings, values

LINUX = "@io_bazel_rules_go//go/platform:linux"
AMD64 = "@io_bazel_rules_go//go/platform:amd64"
LINUX_AMD64 = "@io_bazel_rules_go//go/platform:linux_amd64"


def test_extract_composite_accepts_parts_in_any_order() -> None:
    generic = strings("a.go")
    os_select = select({LINUX: strings("l.go")})
    platform_select = select({DEFAULT_CONDITION: strings(), LINUX_AMD64: strings("la.go")})
    arch_select = select({AMD64: strings("x.go")})

    parts = extract_composite(plus(platform_select, arch_select, generic, os_select))

    assert parts.generic is generic
    assert parts.os is os_select.args[0]
    assert parts.arch is arch_select.args[0]
    assert parts.platform is platform_select.args[0]


def test_extract_composite_of_nothing() -> None:
    assert extract_composite(None) == CompositeExprs()


def test_default_only_select_counts_as_platform_select() -> None:
    parts = extract_composite(select({DEFAULT_CONDITION: strings("d.go")}))

    assert parts.platform is not None
    assert parts.os is None


def test_custom_platform_names() -> None:
    names = PlatformNames(os=frozenset({"plan10"}), arch=frozenset({"rv128"}))

    parts = extract_composite(select({":plan10_rv128": strings("p.go")}), names)

    assert parts.platform is not None
    with pytest.raises(MalformedExpressionError, match="unknown platform"):
        extract_composite(select({LINUX: strings("l.go")}), names)


@pytest.mark.parametrize(
    "expr",
    [
        plus(strings("a"), strings("b")),
        plus(select({LINUX: strings("a")}), select({LINUX: strings("b")})),
        CallExpr(func=Ident("glob"), args=[strings("*.go")]),
        s("scalar"),
        select({"//not/a:platform": strings("a")}),
        BinaryExpr(strings("a"), "*", strings("b")),
    ],
)
def test_extract_composite_rejects_other_shapes(expr: object) -> None:
    with pytest.raises(MalformedExpressionError):
        extract_composite(expr)  # type: ignore[arg-type]


def test_make_composite_expr() -> None:
    generic = strings("a.go")
    os_dict = select({LINUX: strings("l.go")}).args[0]

    assert make_composite_expr(CompositeExprs()) is None
    assert make_composite_expr(CompositeExprs(generic=generic)) is generic
    assert not generic.force_multiline

    joined = make_composite_expr(CompositeExprs(generic=generic, os=os_dict))  # type: ignore[arg-type]

    assert isinstance(joined, BinaryExpr)
    assert joined.op == "+"
    assert generic.force_multiline
    assert select_cases(joined.y) == {LINUX: ["l.go"]}


def test_map_expr_strings_rewrites_without_touching_input() -> None:
    expr = plus(strings(":old", ":other"), select({LINUX: strings(":old")}))

    mapped = map_expr_strings(expr, lambda value: ":new" if value == ":old" else value)

    assert isinstance(mapped, BinaryExpr)
    assert values(mapped.x) == [":new", ":other"]
    assert select_cases(mapped.y) == {LINUX: [":new"]}
    assert isinstance(expr, BinaryExpr)
    assert values(expr.x) == [":old", ":other"]


def test_map_expr_strings_drops_emptied_parts() -> None:
    expr = plus(strings("drop"), select({LINUX: strings("drop"), DEFAULT_CONDITION: strings("keep")}))

    mapped = map_expr_strings(expr, lambda value: "" if value == "drop" else value)

    assert mapped is None


def test_map_expr_strings_keeps_originally_empty_list() -> None:
    mapped = map_expr_strings(ListExpr(), str.upper)

    assert isinstance(mapped, ListExpr)
    assert mapped.items == []


def test_map_expr_strings_rejects_other_calls() -> None:
    with pytest.raises(StructuralInvariantError):
        map_expr_strings(CallExpr(func=Ident("glob"), args=[strings("*.go")]), str.upper)
