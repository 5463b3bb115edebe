"""Convert native Python values into descriptor expressions.

Generators describe attribute values with plain Python data; ``Rule.set_attr``
runs them through ``expr_from_value``. Supported values:

- ``str``, ``bool``, ``int``/``float``
- lists and tuples of supported values
- ``SortedStrings`` / ``UnsortedStrings`` (lists of labels)
- mappings with string keys (become dicts, keys sorted)
- ``GlobValue`` (becomes ``glob([...], exclude = [...])``)
- ``SelectStringsValue`` and ``PlatformStrings`` (become ``[...] + select({...})``)
- existing expression nodes, returned unchanged
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from functools import singledispatch
from typing import Final

from .syntax import (
    EXPR_TYPES,
    AssignExpr,
    BinaryExpr,
    CallExpr,
    DictExpr,
    Expr,
    Ident,
    KeyValueExpr,
    ListExpr,
    LiteralExpr,
    StringExpr,
    select_call,
    string_list,
)

DEFAULT_CONDITION: Final[str] = "//conditions:default"


class SortedStrings(list[str]):
    """Label list that is re-sorted whenever its file is synced."""


class UnsortedStrings(list[str]):
    """Label list whose order is significant and never re-sorted."""


class SelectStringsValue(dict[str, list[str]]):
    """Condition key -> string list, rendered as a ``select`` call."""


@dataclass(frozen=True, slots=True)
class GlobValue:
    patterns: tuple[str, ...]
    excludes: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PlatformStrings:
    """Strings split by platform: a generic list plus OS, arch and os_arch cases.

    Keys of the case mappings are condition labels.
    """

    generic: tuple[str, ...] = ()
    os: Mapping[str, Sequence[str]] = field(default_factory=dict[str, Sequence[str]])
    arch: Mapping[str, Sequence[str]] = field(default_factory=dict[str, Sequence[str]])
    platform: Mapping[str, Sequence[str]] = field(default_factory=dict[str, Sequence[str]])


@singledispatch
def expr_from_value(value: object) -> Expr:
    """Return an expression representing ``value``.

    Raises ``TypeError`` for values with no descriptor representation.
    """

    if isinstance(value, EXPR_TYPES):
        return value
    if isinstance(value, Mapping):
        return _dict_from_mapping(value)  # pyright: ignore[reportUnknownArgumentType]
    raise TypeError(f"cannot convert {type(value).__name__} to an expression: {value!r}")


@expr_from_value.register
def _(value: str) -> Expr:
    return StringExpr(value)


@expr_from_value.register
def _(value: bool) -> Expr:
    return Ident("True" if value else "False")


@expr_from_value.register
def _(value: int) -> Expr:
    return LiteralExpr(str(value))


@expr_from_value.register
def _(value: float) -> Expr:
    return LiteralExpr(repr(value))


@expr_from_value.register
def _(value: list) -> Expr:  # pyright: ignore[reportMissingTypeArgument]
    return ListExpr(items=[expr_from_value(item) for item in value])  # pyright: ignore[reportUnknownVariableType]


@expr_from_value.register
def _(value: tuple) -> Expr:  # pyright: ignore[reportMissingTypeArgument]
    return ListExpr(items=[expr_from_value(item) for item in value])  # pyright: ignore[reportUnknownVariableType]


@expr_from_value.register
def _(value: SelectStringsValue) -> Expr:
    return select_call(_select_dict(value))


@expr_from_value.register
def _(value: GlobValue) -> Expr:
    args: list[Expr] = [string_list(value.patterns)]
    if value.excludes:
        args.append(AssignExpr(Ident("exclude"), string_list(value.excludes)))
    return CallExpr(func=Ident("glob"), args=args)


@expr_from_value.register
def _(value: PlatformStrings) -> Expr:
    parts: list[Expr] = []
    if value.generic:
        parts.append(string_list(value.generic))
    for cases in (value.os, value.arch, value.platform):
        if cases:
            parts.append(select_call(_select_dict(cases)))
    if not parts:
        return ListExpr()
    expr = parts[0]
    for part in parts[1:]:
        expr = BinaryExpr(expr, "+", part)
    if len(parts) > 1:
        _force_multiline(parts)
    return expr


def _dict_from_mapping(value: Mapping[object, object]) -> DictExpr:
    entries: list[KeyValueExpr] = []
    for key in sorted(value, key=str):
        if not isinstance(key, str):
            raise TypeError(f"dict keys must be strings, got {type(key).__name__}")
        entries.append(KeyValueExpr(StringExpr(key), expr_from_value(value[key])))
    return DictExpr(entries=entries)


def _select_dict(cases: Mapping[str, Sequence[str]]) -> DictExpr:
    keys = sorted(key for key in cases if key != DEFAULT_CONDITION)
    entries = [KeyValueExpr(StringExpr(key), string_list(cases[key])) for key in keys]
    default = cases.get(DEFAULT_CONDITION, ())
    entries.append(KeyValueExpr(StringExpr(DEFAULT_CONDITION), string_list(default)))
    return DictExpr(entries=entries, force_multiline=True)


def _force_multiline(parts: list[Expr]) -> None:
    for part in parts:
        if isinstance(part, ListExpr):
            part.force_multiline = True
        elif isinstance(part, CallExpr) and isinstance(part.args[0], DictExpr):
            part.args[0].force_multiline = True
