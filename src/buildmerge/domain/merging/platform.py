"""The composite list + select shape of platform-dependent values.

Generated list attributes have the form::

    [...] + select({os cases}) + select({arch cases}) + select({os_arch cases})

The parts may appear in any order and any of them may be missing.
``extract_composite`` splits an expression into those parts and
``make_composite_expr`` joins them back together.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING

from buildmerge.config.policy import KNOWN_ARCH, KNOWN_OS
from buildmerge.domain.label import LabelError, parse_label
from buildmerge.domain.syntax import (
    BinaryExpr,
    CallExpr,
    DictExpr,
    Ident,
    KeyValueExpr,
    ListExpr,
    StringExpr,
)
from buildmerge.domain.value import DEFAULT_CONDITION

from .errors import MalformedExpressionError, StructuralInvariantError

if TYPE_CHECKING:
    from collections.abc import Callable, Collection

    from buildmerge.domain.syntax import Expr


@dataclass(slots=True)
class CompositeExprs:
    """Parts of a composite value; ``None`` marks a missing part."""

    generic: ListExpr | None = None
    os: DictExpr | None = None
    arch: DictExpr | None = None
    platform: DictExpr | None = None

    def dicts(self) -> tuple[DictExpr | None, DictExpr | None, DictExpr | None]:
        return (self.os, self.arch, self.platform)


@dataclass(frozen=True, slots=True)
class PlatformNames:
    """Known OS and architecture names used to classify select keys."""

    os: Collection[str] = frozenset(KNOWN_OS)
    arch: Collection[str] = frozenset(KNOWN_ARCH)


DEFAULT_PLATFORMS = PlatformNames()


def split_sum(expr: Expr) -> list[Expr]:
    """Operands of a chain of ``+`` expressions, right to left."""

    parts: list[Expr] = []
    while isinstance(expr, BinaryExpr):
        if expr.op != "+":
            raise MalformedExpressionError(f"unexpected operator {expr.op!r}")
        parts.append(expr.y)
        expr = expr.x
    parts.append(expr)
    return parts


def select_dict(expr: Expr) -> DictExpr | None:
    """The dict argument of ``select({...})``; ``None`` if ``expr`` is not a select call."""

    if not isinstance(expr, CallExpr):
        return None
    if not (isinstance(expr.func, Ident) and expr.func.name == "select" and len(expr.args) == 1):
        return None
    arg = expr.args[0]
    return arg if isinstance(arg, DictExpr) else None


def extract_composite(expr: Expr | None, platforms: PlatformNames = DEFAULT_PLATFORMS) -> CompositeExprs:
    """Split ``expr`` into its composite parts.

    Raises ``MalformedExpressionError`` when ``expr`` has another shape.
    """

    composite = CompositeExprs()
    if expr is None:
        return composite

    for part in split_sum(expr):
        if isinstance(part, ListExpr):
            if composite.generic is not None:
                raise MalformedExpressionError("multiple list expressions")
            composite.generic = part
            continue

        if isinstance(part, CallExpr):
            arg = select_dict(part)
            if arg is None:
                raise MalformedExpressionError("call other than select({...})")
            slot = _classify_select(arg, platforms)
            if getattr(composite, slot) is not None:
                raise MalformedExpressionError(f"multiple {slot}-specific selects")
            setattr(composite, slot, arg)
            continue

        raise MalformedExpressionError(f"unexpected {type(part).__name__} in list expression")
    return composite


def _classify_select(arg: DictExpr, platforms: PlatformNames) -> str:
    # The first non-default key decides which kind of select this is.
    for entry in arg.entries:
        if not isinstance(entry.key, StringExpr):
            raise MalformedExpressionError("select keys must be strings")
        key = entry.key.value
        if key == DEFAULT_CONDITION:
            continue
        try:
            name = parse_label(key).name
        except LabelError as exc:
            raise MalformedExpressionError(f"select key is not a label: {key!r}") from exc
        if name in platforms.os:
            return "os"
        if name in platforms.arch:
            return "arch"
        os_name, sep, arch_name = name.partition("_")
        if sep and os_name in platforms.os and arch_name in platforms.arch:
            return "platform"
        raise MalformedExpressionError(f"select key names an unknown platform: {key!r}")
    # Empty, or only the default case.
    return "platform"


def make_composite_expr(composite: CompositeExprs) -> Expr | None:
    """Join composite parts into one expression; ``None`` when all are missing."""

    parts: list[Expr] = []
    if composite.generic is not None:
        parts.append(composite.generic)
    for dict_expr in composite.dicts():
        if dict_expr is not None:
            parts.append(CallExpr(func=Ident("select"), args=[dict_expr]))

    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    expr = parts[0]
    _force_multiline(expr)
    for part in parts[1:]:
        _force_multiline(part)
        expr = BinaryExpr(expr, "+", part)
    return expr


def _force_multiline(expr: Expr) -> None:
    if isinstance(expr, ListExpr):
        expr.force_multiline = True
    elif isinstance(expr, CallExpr) and isinstance(expr.args[0], DictExpr):
        expr.args[0].force_multiline = True


def map_expr_strings(expr: Expr | None, fn: Callable[[str], str]) -> Expr | None:
    """Apply ``fn`` to every string in a composite expression.

    The result has the same structure as ``expr``; strings mapped to ``""``
    are dropped, and containers left empty by that are dropped too. The input
    is not modified. Calls other than ``select`` raise
    ``StructuralInvariantError``.
    """

    if expr is None:
        return None

    if isinstance(expr, StringExpr):
        value = fn(expr.value)
        if not value:
            return None
        mapped = copy.copy(expr)
        mapped.value = value
        return mapped

    if isinstance(expr, ListExpr):
        items = [item for item in (map_expr_strings(elem, fn) for elem in expr.items) if item is not None]
        if not items and expr.items:
            return None
        mapped_list = copy.copy(expr)
        mapped_list.items = items
        return mapped_list

    if isinstance(expr, DictExpr):
        entries: list[KeyValueExpr] = []
        only_default = True
        for entry in expr.entries:
            value_expr = map_expr_strings(entry.value, fn)
            if value_expr is None:
                continue
            entries.append(KeyValueExpr(entry.key, value_expr))
            if not (isinstance(entry.key, StringExpr) and entry.key.value == DEFAULT_CONDITION):
                only_default = False
        if only_default:
            return None
        mapped_dict = copy.copy(expr)
        mapped_dict.entries = entries
        return mapped_dict

    if isinstance(expr, CallExpr):
        if not (isinstance(expr.func, Ident) and expr.func.name == "select" and len(expr.args) == 1):
            raise StructuralInvariantError(f"unexpected call in generated expression: {expr!r}")
        arg = map_expr_strings(expr.args[0], fn)
        if arg is None:
            return None
        mapped_call = copy.copy(expr)
        mapped_call.args = [arg]
        return mapped_call

    if isinstance(expr, BinaryExpr):
        x = map_expr_strings(expr.x, fn)
        y = map_expr_strings(expr.y, fn)
        if x is None:
            return y
        if y is None:
            return x
        mapped_binary = copy.copy(expr)
        mapped_binary.x = x
        mapped_binary.y = y
        return mapped_binary

    return None
