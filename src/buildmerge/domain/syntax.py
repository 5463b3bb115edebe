"""Mutable syntax tree for build descriptor files.

The tree is a closed set of node types. Every node carries the comments
attached to it and a ``keep`` flag. The flag is derived from the comments once,
when a node is read or built (see ``attach_comments``); merge code only looks
at the flag and never parses comment text.

Comment placement follows the usual layout of descriptor files:
- ``before``: full-line comments directly above the node
- ``suffix``: end-of-line comments on the node's (last) line
- ``after``: full-line comments below the node

Only ``before`` and ``suffix`` comments can mark a node as kept.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from functools import singledispatch
from typing import TYPE_CHECKING, Final, TypeAlias, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

KEEP_MARKER: Final[str] = "keep"


def is_keep_comment(token: str) -> bool:
    """Return whether a comment token is exactly ``# keep``.

    ``# keep sorted`` and similar comments are formatter hints, not markers.
    """

    return token.strip().removeprefix("#").strip() == KEEP_MARKER


@dataclass(slots=True)
class Comments:
    """Comments attached to one node."""

    before: list[str] = field(default_factory=list[str])
    suffix: list[str] = field(default_factory=list[str])
    after: list[str] = field(default_factory=list[str])


@dataclass(slots=True, eq=False)
class StringExpr:
    value: str
    comments: Comments = field(default_factory=Comments, kw_only=True)
    keep: bool = field(default=False, kw_only=True)


@dataclass(slots=True, eq=False)
class LiteralExpr:
    """Numeric literal, stored as its source token."""

    token: str
    comments: Comments = field(default_factory=Comments, kw_only=True)
    keep: bool = field(default=False, kw_only=True)


@dataclass(slots=True, eq=False)
class Ident:
    name: str
    comments: Comments = field(default_factory=Comments, kw_only=True)
    keep: bool = field(default=False, kw_only=True)


@dataclass(slots=True, eq=False)
class ListExpr:
    items: list[Expr] = field(default_factory=list["Expr"])
    force_multiline: bool = False
    comments: Comments = field(default_factory=Comments, kw_only=True)
    keep: bool = field(default=False, kw_only=True)


@dataclass(slots=True, eq=False)
class KeyValueExpr:
    key: Expr
    value: Expr
    comments: Comments = field(default_factory=Comments, kw_only=True)
    keep: bool = field(default=False, kw_only=True)


@dataclass(slots=True, eq=False)
class DictExpr:
    entries: list[KeyValueExpr] = field(default_factory=list["KeyValueExpr"])
    force_multiline: bool = False
    comments: Comments = field(default_factory=Comments, kw_only=True)
    keep: bool = field(default=False, kw_only=True)


@dataclass(slots=True, eq=False)
class CallExpr:
    func: Expr
    args: list[Expr] = field(default_factory=list["Expr"])
    force_multiline: bool = False
    comments: Comments = field(default_factory=Comments, kw_only=True)
    keep: bool = field(default=False, kw_only=True)


@dataclass(slots=True, eq=False)
class AssignExpr:
    """``lhs = rhs``; used for keyword arguments and top-level assignments."""

    lhs: Expr
    rhs: Expr
    comments: Comments = field(default_factory=Comments, kw_only=True)
    keep: bool = field(default=False, kw_only=True)


@dataclass(slots=True, eq=False)
class BinaryExpr:
    x: Expr
    op: str
    y: Expr
    comments: Comments = field(default_factory=Comments, kw_only=True)
    keep: bool = field(default=False, kw_only=True)


@dataclass(slots=True, eq=False)
class DotExpr:
    x: Expr
    name: str
    comments: Comments = field(default_factory=Comments, kw_only=True)
    keep: bool = field(default=False, kw_only=True)


@dataclass(slots=True, eq=False)
class LoadSymbol:
    """One loaded symbol; ``local`` differs from ``source`` when aliased."""

    local: str
    source: str
    comments: Comments = field(default_factory=Comments, kw_only=True)

    @property
    def aliased(self) -> bool:
        return self.local != self.source


@dataclass(slots=True, eq=False)
class LoadStmt:
    module: str
    symbols: list[LoadSymbol] = field(default_factory=list[LoadSymbol])
    comments: Comments = field(default_factory=Comments, kw_only=True)
    keep: bool = field(default=False, kw_only=True)


@dataclass(slots=True, eq=False)
class CommentBlock:
    """Free-standing comment lines between statements."""

    comments: Comments = field(default_factory=Comments, kw_only=True)
    keep: bool = field(default=False, kw_only=True)


Expr: TypeAlias = (
    StringExpr
    | LiteralExpr
    | Ident
    | ListExpr
    | KeyValueExpr
    | DictExpr
    | CallExpr
    | AssignExpr
    | BinaryExpr
    | DotExpr
)
Stmt: TypeAlias = Expr | LoadStmt | CommentBlock

N = TypeVar("N", bound="Stmt")

EXPR_TYPES: Final = (
    StringExpr,
    LiteralExpr,
    Ident,
    ListExpr,
    KeyValueExpr,
    DictExpr,
    CallExpr,
    AssignExpr,
    BinaryExpr,
    DotExpr,
)


def attach_comments(
    node: N,
    *,
    before: Iterable[str] = (),
    suffix: Iterable[str] = (),
    after: Iterable[str] = (),
) -> N:
    """Attach comments to ``node`` and derive its keep flag."""

    before = list(before)
    suffix = list(suffix)
    node.comments.before.extend(before)
    node.comments.suffix.extend(suffix)
    node.comments.after.extend(after)
    if any(is_keep_comment(token) for token in (*before, *suffix)):
        node.keep = True
    return node


def mark_keep(node: N) -> N:
    """Attach a ``# keep`` end-of-line comment to ``node``."""

    return attach_comments(node, suffix=[f"# {KEEP_MARKER}"])


def clone(node: N) -> N:
    """Deep copy of ``node`` including its comments."""

    return copy.deepcopy(node)


@singledispatch
def children(_node: object) -> tuple[Expr, ...]:
    return ()


@children.register
def _(node: ListExpr) -> tuple[Expr, ...]:
    return tuple(node.items)


@children.register
def _(node: KeyValueExpr) -> tuple[Expr, ...]:
    return (node.key, node.value)


@children.register
def _(node: DictExpr) -> tuple[Expr, ...]:
    return tuple(node.entries)


@children.register
def _(node: CallExpr) -> tuple[Expr, ...]:
    return (node.func, *node.args)


@children.register
def _(node: AssignExpr) -> tuple[Expr, ...]:
    return (node.lhs, node.rhs)


@children.register
def _(node: BinaryExpr) -> tuple[Expr, ...]:
    return (node.x, node.y)


@children.register
def _(node: DotExpr) -> tuple[Expr, ...]:
    return (node.x,)


def walk(node: Stmt) -> Iterator[Stmt]:
    """Yield ``node`` and every expression below it, depth first."""

    stack: list[Stmt] = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(children(current)))


@singledispatch
def is_scalar(_expr: object) -> bool:
    return False


@is_scalar.register
def _(_expr: StringExpr) -> bool:
    return True


@is_scalar.register
def _(_expr: LiteralExpr) -> bool:
    return True


@is_scalar.register
def _(_expr: Ident) -> bool:
    return True


def string_value(expr: Expr | None) -> str | None:
    if isinstance(expr, StringExpr):
        return expr.value
    return None


def callee_name(call: CallExpr) -> str:
    """Name of the called function: ``foo`` or ``pkg.foo``; empty otherwise."""

    func = call.func
    if isinstance(func, Ident):
        return func.name
    if isinstance(func, DotExpr) and isinstance(func.x, Ident):
        return f"{func.x.name}.{func.name}"
    return ""


def string_list(values: Iterable[str]) -> ListExpr:
    return ListExpr(items=[StringExpr(value) for value in values])


def select_call(dict_expr: DictExpr) -> CallExpr:
    return CallExpr(func=Ident("select"), args=[dict_expr])
