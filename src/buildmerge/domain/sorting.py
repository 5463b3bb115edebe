"""Label ordering for string lists.

Strings are grouped into phases: plain strings, same-package labels (``:x``),
absolute labels (``//x``), external labels (``@x``) and finally wrapped
values such as ``requirement("x")``. Inside a phase values compare by their
parts split at ``.`` and ``:``, then by raw value, then by original position.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, TypeAlias

from .syntax import CallExpr, Ident, ListExpr, StringExpr, walk

if TYPE_CHECKING:
    from .syntax import Expr, Stmt


@dataclass(frozen=True, slots=True)
class SimpleValue:
    """A string, optionally wrapped in a one-argument call (``symbol("str")``)."""

    symbol: str
    value: str


class SortPhase(IntEnum):
    DEFAULT = 0
    LOCAL = 1
    ABSOLUTE = 2
    EXTERNAL = 3
    SIMPLE_CALL = 4


def simple_value(expr: Expr) -> SimpleValue | None:
    """Return the simple value of ``expr`` or ``None`` if it has another shape."""

    if isinstance(expr, StringExpr):
        return SimpleValue("", expr.value)
    if (
        isinstance(expr, CallExpr)
        and isinstance(expr.func, Ident)
        and len(expr.args) == 1
        and isinstance(expr.args[0], StringExpr)
    ):
        return SimpleValue(expr.func.name, expr.args[0].value)
    return None


SortKey: TypeAlias = "tuple[SortPhase, list[str], str, int]"


def sort_key(index: int, value: SimpleValue) -> SortKey:
    if value.symbol:
        return (SortPhase.SIMPLE_CALL, [value.symbol, value.value], value.value, index)
    if value.value.startswith(":"):
        phase = SortPhase.LOCAL
    elif value.value.startswith("//"):
        phase = SortPhase.ABSOLUTE
    elif value.value.startswith("@"):
        phase = SortPhase.EXTERNAL
    else:
        phase = SortPhase.DEFAULT
    return (phase, value.value.replace(":", ".").split("."), value.value, index)


def sort_list_labels(list_expr: ListExpr) -> None:
    """Sort ``list_expr`` in place if every element is a simple value.

    Comments above the first element stay at the top of the list.
    """

    if not list_expr.items:
        return
    keys: list[tuple[SortKey, Expr]] = []
    for index, item in enumerate(list_expr.items):
        value = simple_value(item)
        if value is None:
            return
        keys.append((sort_key(index, value), item))

    first = list_expr.items[0]
    header = first.comments.before
    first.comments.before = []
    keys.sort(key=lambda pair: pair[0])
    list_expr.items = [item for _, item in keys]
    new_first = list_expr.items[0]
    new_first.comments.before = header + new_first.comments.before


def sort_expr_labels(expr: Stmt) -> None:
    """Sort every string list nested in ``expr``, including select branches."""

    for node in walk(expr):
        if isinstance(node, ListExpr):
            sort_list_labels(node)
