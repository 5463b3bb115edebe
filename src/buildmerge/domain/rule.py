"""Rule, load and file views over a descriptor syntax tree.

``Rule`` and ``Load`` wrap one top-level statement each. Attribute edits
apply to the wrapped call right away; deletions and insertions are recorded
on the owning ``File`` and only materialised by ``File.sync()``. Until then
``File.rules``/``File.loads`` and every ``index`` describe the tree as it was
at the previous sync.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from itertools import count
from typing import TYPE_CHECKING, Final, TypeAlias

from .sorting import sort_expr_labels
from .syntax import (
    AssignExpr,
    CallExpr,
    DotExpr,
    Ident,
    ListExpr,
    LoadStmt,
    LoadSymbol,
    StringExpr,
    callee_name,
)
from .value import SortedStrings, expr_from_value

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from .syntax import Expr, Stmt

PRIVATE_ATTR_PREFIX: Final[str] = "_"
DEFAULT_DIRECTIVE_PREFIX: Final[str] = "gazelle:"
# Kinds named by their first positional string when ``name`` is absent.
ANY_NAME_KINDS: Final = frozenset({"package_group"})

# Attributes that never make a rule worth keeping on their own.
_TRIVIAL_ATTRS: Final = frozenset({"name", "visibility"})


@dataclass(frozen=True, slots=True)
class Directive:
    """A ``# <prefix>key value`` comment found in a file."""

    key: str
    value: str


def scan_directives(stmts: Iterable[Stmt], prefix: str = DEFAULT_DIRECTIVE_PREFIX) -> list[Directive]:
    """Collect directives from the full-line comments of top-level statements."""

    pattern = re.compile(rf"^#\s*{re.escape(prefix)}(\w+)\s*(.*?)\s*$")
    directives: list[Directive] = []
    for stmt in stmts:
        for token in (*stmt.comments.before, *stmt.comments.after):
            match = pattern.match(token.strip())
            if match:
                directives.append(Directive(match.group(1), match.group(2)))
    return directives


class Rule:
    """A call statement viewed as ``kind(name = ..., attr = ...)``."""

    def __init__(self, call: CallExpr, *, index: int = -1) -> None:
        self.call = call
        self._index = index
        self._deleted = False
        self._attrs: dict[str, AssignExpr] = {}
        self._sorted: set[str] = set()
        self._private: dict[str, object] = {}
        for arg in call.args:
            if isinstance(arg, AssignExpr) and isinstance(arg.lhs, Ident):
                self._attrs[arg.lhs.name] = arg

    @classmethod
    def new(cls, kind: str, name: str = "") -> Rule:
        rule = cls(CallExpr(func=_callee(kind)))
        if name:
            rule.set_attr("name", name)
        return rule

    def __repr__(self) -> str:
        return f"Rule({self.kind}:{self.name or '<unnamed>'})"

    @property
    def kind(self) -> str:
        return callee_name(self.call)

    @property
    def name(self) -> str:
        """The ``name`` attribute; any-name kinds fall back to the first positional string."""

        name = self.attr_string("name")
        if name or self.kind not in ANY_NAME_KINDS:
            return name
        for arg in self.args:
            if isinstance(arg, StringExpr):
                return arg.value
        return ""

    @property
    def index(self) -> int:
        return self._index

    @property
    def args(self) -> list[Expr]:
        """Positional (unnamed) arguments."""

        return [arg for arg in self.call.args if not self._is_attr_arg(arg)]

    def set_kind(self, kind: str) -> None:
        self.call.func = _callee(kind)

    def set_name(self, name: str) -> None:
        self.set_attr("name", name)

    # Public attributes

    def attr_keys(self) -> list[str]:
        return list(self._attrs)

    def attr_assign(self, key: str) -> AssignExpr | None:
        return self._attrs.get(key)

    def attr(self, key: str) -> Expr | None:
        assign = self._attrs.get(key)
        return assign.rhs if assign is not None else None

    def attr_string(self, key: str) -> str:
        expr = self.attr(key)
        return expr.value if isinstance(expr, StringExpr) else ""

    def attr_strings(self, key: str) -> list[str]:
        """String elements of a plain list attribute; empty for any other shape."""

        expr = self.attr(key)
        if not isinstance(expr, ListExpr):
            return []
        values: list[str] = []
        for item in expr.items:
            if not isinstance(item, StringExpr):
                return []
            values.append(item.value)
        return values

    def attr_sorted(self, key: str) -> bool:
        return key in self._sorted

    def set_attr(self, key: str, value: object, *, sorted_strings: bool | None = None) -> None:
        """Set ``key`` from a native value or an expression.

        Comments on an existing assignment are kept. ``sorted_strings``
        overrides whether the value is re-sorted on sync; by default only
        ``SortedStrings`` values are.
        """

        if key.startswith(PRIVATE_ATTR_PREFIX):
            raise ValueError(f"attribute {key!r} uses the private prefix; use set_private_attr")
        rhs = expr_from_value(value)
        if sorted_strings is None:
            sorted_strings = isinstance(value, SortedStrings)
        if sorted_strings:
            self._sorted.add(key)
        else:
            self._sorted.discard(key)

        assign = self._attrs.get(key)
        if assign is not None:
            assign.rhs = rhs
            return
        assign = AssignExpr(Ident(key), rhs)
        self._attrs[key] = assign
        self.call.args.append(assign)

    def del_attr(self, key: str) -> None:
        assign = self._attrs.pop(key, None)
        self._sorted.discard(key)
        if assign is not None:
            self.call.args = [arg for arg in self.call.args if arg is not assign]

    # Private attributes are metadata carried between passes and never written out.

    def private_attr(self, key: str) -> object | None:
        return self._private.get(key)

    def private_attr_keys(self) -> list[str]:
        return list(self._private)

    def set_private_attr(self, key: str, value: object) -> None:
        if not key.startswith(PRIVATE_ATTR_PREFIX):
            raise ValueError(f"private attribute {key!r} must start with {PRIVATE_ATTR_PREFIX!r}")
        self._private[key] = value

    # Keep markers

    def should_keep(self) -> bool:
        """Whether a keep comment sits directly above the rule or at the end of its line."""

        return self.call.keep

    def attr_kept(self, key: str) -> bool:
        assign = self._attrs.get(key)
        return assign is not None and (assign.keep or assign.rhs.keep)

    def is_empty(self, non_empty_attrs: Collection[str]) -> bool:
        """Whether none of ``non_empty_attrs`` carries a value.

        A kind without non-empty attributes is never considered empty.
        """

        checked = [key for key in non_empty_attrs if key not in _TRIVIAL_ATTRS]
        if not checked:
            return False
        return not any(self._has_value(key) for key in checked)

    # Lifecycle

    @property
    def deleted(self) -> bool:
        return self._deleted

    def delete(self) -> None:
        self._deleted = True

    def insert(self, file: File, index: int | None = None) -> None:
        """Schedule this rule for insertion before statement ``index`` (default: end)."""

        file.schedule_insert(self, index)

    def sync(self) -> None:
        for key in self._sorted:
            assign = self._attrs.get(key)
            if assign is not None:
                sort_expr_labels(assign.rhs)

    @property
    def stmt(self) -> Stmt:
        return self.call

    def _has_value(self, key: str) -> bool:
        assign = self._attrs.get(key)
        if assign is None:
            return False
        if self.attr_kept(key):
            return True
        return not (isinstance(assign.rhs, ListExpr) and not assign.rhs.items)

    def _is_attr_arg(self, arg: Expr) -> bool:
        return isinstance(arg, AssignExpr) and isinstance(arg.lhs, Ident) and self._attrs.get(arg.lhs.name) is arg


class Load:
    """A ``load(module, symbols...)`` statement."""

    def __init__(self, stmt: LoadStmt, *, index: int = -1) -> None:
        self.load = stmt
        self._index = index
        self._deleted = False
        self._modified = False

    @classmethod
    def new(cls, module: str) -> Load:
        return cls(LoadStmt(module))

    def __repr__(self) -> str:
        return f"Load({self.name!r}, {self.symbols()!r})"

    @property
    def name(self) -> str:
        return self.load.module

    @property
    def index(self) -> int:
        return self._index

    def symbols(self) -> list[str]:
        """Local names bound by this load, sorted."""

        return sorted(symbol.local for symbol in self.load.symbols)

    def has(self, symbol: str) -> bool:
        return any(entry.local == symbol for entry in self.load.symbols)

    def add(self, symbol: str) -> None:
        if self.has(symbol):
            return
        self.load.symbols.append(LoadSymbol(symbol, symbol))
        self._modified = True

    def remove(self, symbol: str) -> None:
        remaining = [entry for entry in self.load.symbols if entry.local != symbol]
        if len(remaining) != len(self.load.symbols):
            self.load.symbols = remaining
            self._modified = True

    def is_empty(self) -> bool:
        return not self.load.symbols

    @property
    def deleted(self) -> bool:
        return self._deleted

    def delete(self) -> None:
        self._deleted = True

    def insert(self, file: File, index: int | None = None) -> None:
        self._modified = True
        file.schedule_insert(self, index)

    def sync(self) -> None:
        if not self._modified:
            return
        # plain symbols first, then aliases; each group by local name
        self.load.symbols.sort(key=lambda entry: (entry.aliased, entry.local))
        self._modified = False

    @property
    def stmt(self) -> Stmt:
        return self.load


Member: TypeAlias = "Rule | Load"


@dataclass(slots=True)
class _Insertion:
    member: Member
    index: int | None
    seq: int


class File:
    """A descriptor file: an ordered list of statements plus rule and load views."""

    def __init__(
        self,
        stmts: Iterable[Stmt] = (),
        *,
        path: str = "",
        pkg: str = "",
        directive_prefix: str = DEFAULT_DIRECTIVE_PREFIX,
    ) -> None:
        self.path = path
        self.pkg = pkg
        self.stmts: list[Stmt] = list(stmts)
        self.directives = scan_directives(self.stmts, directive_prefix)
        self.rules: list[Rule] = []
        self.loads: list[Load] = []
        self._insertions: list[_Insertion] = []
        self._seq = count()
        self._reindex({})

    def __repr__(self) -> str:
        return f"File({self.path!r}, rules={len(self.rules)}, loads={len(self.loads)})"

    def directive(self, key: str) -> Directive | None:
        for directive in self.directives:
            if directive.key == key:
                return directive
        return None

    def schedule_insert(self, member: Member, index: int | None) -> None:
        self._insertions.append(_Insertion(member, index, next(self._seq)))

    def sync(self) -> None:
        """Apply pending deletions and insertions and refresh indices.

        Members inserted at the same index keep their insertion order.
        """

        for member in (*self.loads, *self.rules):
            member.sync()
        for insertion in self._insertions:
            insertion.member.sync()

        known: dict[int, Member] = {id(member.stmt): member for member in (*self.rules, *self.loads)}
        deleted = {key for key, member in known.items() if member.deleted}
        pending = sorted(
            (ins for ins in self._insertions if not ins.member.deleted),
            key=lambda ins: (_position(ins, len(self.stmts)), ins.seq),
        )
        self._insertions = []

        stmts: list[Stmt] = []
        cursor = 0
        for position, stmt in enumerate(self.stmts):
            while cursor < len(pending) and _position(pending[cursor], len(self.stmts)) <= position:
                stmts.append(pending[cursor].member.stmt)
                cursor += 1
            if id(stmt) not in deleted:
                stmts.append(stmt)
        stmts.extend(ins.member.stmt for ins in pending[cursor:])

        for ins in pending:
            known[id(ins.member.stmt)] = ins.member
        for member in known.values():
            if member.deleted:
                member._index = -1  # noqa: SLF001
        self.stmts = stmts
        self._reindex(known)

    def _reindex(self, known: dict[int, Member]) -> None:
        rules: list[Rule] = []
        loads: list[Load] = []
        for position, stmt in enumerate(self.stmts):
            member = known.get(id(stmt))
            if isinstance(stmt, LoadStmt):
                load = member if isinstance(member, Load) else Load(stmt)
                load._index = position  # noqa: SLF001
                loads.append(load)
            elif isinstance(stmt, CallExpr) and callee_name(stmt):
                rule = member if isinstance(member, Rule) else Rule(stmt)
                rule._index = position  # noqa: SLF001
                rules.append(rule)
        self.rules = rules
        self.loads = loads


def _position(insertion: _Insertion, end: int) -> int:
    return end if insertion.index is None else insertion.index


def _callee(kind: str) -> Expr:
    pkg, sep, member = kind.partition(".")
    if sep:
        return DotExpr(Ident(pkg), member)
    return Ident(kind)
