"""Translate JSON descriptor payloads to and from the syntax tree."""

from __future__ import annotations

from functools import singledispatch
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from pydantic import ValidationError

from buildmerge.domain.rule import DEFAULT_DIRECTIVE_PREFIX, File, Rule
from buildmerge.domain.syntax import (
    AssignExpr,
    BinaryExpr,
    CallExpr,
    CommentBlock,
    DictExpr,
    DotExpr,
    Expr,
    Ident,
    KeyValueExpr,
    ListExpr,
    LiteralExpr,
    LoadStmt,
    LoadSymbol,
    Stmt,
    StringExpr,
    attach_comments,
)

from .schema import (
    AssignNode,
    BinaryNode,
    CallNode,
    CommentNode,
    CommentsPayload,
    DictNode,
    DocumentPayload,
    DotNode,
    IdentNode,
    JsonTreeModel,
    KeyValueNode,
    ListNode,
    LiteralNode,
    LoadNode,
    LoadSymbolPayload,
    StmtNode,
    StringNode,
)

if TYPE_CHECKING:
    from buildmerge.domain.syntax import Comments, N

    from .schema import ExprNode

log = getLogger(__name__)


class DescriptorFormatError(ValueError):
    """Raised when a JSON descriptor cannot be parsed."""


def parse_document(text: str | bytes, source: str = "<string>") -> DocumentPayload:
    try:
        return DocumentPayload.model_validate_json(text)
    except ValidationError as exc:
        raise DescriptorFormatError(f"{source}: invalid descriptor: {exc}") from exc


def read_document(path: Path) -> DocumentPayload:
    log.debug("Reading descriptor %s", path)
    return parse_document(path.read_bytes(), str(path))


def dump_document(document: DocumentPayload) -> str:
    return document.model_dump_json(indent=2, exclude_unset=True)


def write_document(document: DocumentPayload, path: Path) -> None:
    log.debug("Writing descriptor %s", path)
    path.write_text(dump_document(document) + "\n", encoding="utf-8")


# Payload -> tree


def to_file(document: DocumentPayload, directive_prefix: str = DEFAULT_DIRECTIVE_PREFIX) -> File:
    """Build a ``File`` whose rules carry the private and sorted attributes of the payload."""

    stmts = [to_node(node) for node in document.stmts]
    file = File(stmts, path=document.path, pkg=document.pkg, directive_prefix=directive_prefix)
    calls = {id(stmt): node for stmt, node in zip(stmts, document.stmts, strict=True) if isinstance(node, CallNode)}
    for rule in file.rules:
        node = calls.get(id(rule.call))
        if node is not None:
            _apply_rule_metadata(rule, node)
    return file


def to_rules(document: DocumentPayload) -> list[Rule]:
    """Generated or empty rules: every top-level call of the payload."""

    rules: list[Rule] = []
    for node in document.stmts:
        if not isinstance(node, CallNode):
            log.debug("Ignoring top-level %s in rule list", node.type)
            continue
        call = to_node(node)
        rule = Rule(call)
        if not rule.kind:
            raise DescriptorFormatError(f"rule call without a kind: {node.func!r}")
        _apply_rule_metadata(rule, node)
        rules.append(rule)
    return rules


def _apply_rule_metadata(rule: Rule, node: CallNode) -> None:
    for key, value in node.private.items():
        rule.set_private_attr(key, value)
    for key in node.sorted_attrs:
        expr = rule.attr(key)
        if expr is not None:
            rule.set_attr(key, expr, sorted_strings=True)


def _with_comments(node: N, payload: CommentsPayload) -> N:
    return attach_comments(node, before=payload.before, suffix=payload.suffix, after=payload.after)


@singledispatch
def to_node(node: object) -> Stmt:
    raise DescriptorFormatError(f"unsupported node payload: {type(node).__name__}")


@to_node.register
def _(node: StringNode) -> Stmt:
    return _with_comments(StringExpr(node.value), node.comments)


@to_node.register
def _(node: LiteralNode) -> Stmt:
    return _with_comments(LiteralExpr(node.token), node.comments)


@to_node.register
def _(node: IdentNode) -> Stmt:
    return _with_comments(Ident(node.name), node.comments)


@to_node.register
def _(node: ListNode) -> Stmt:
    items = [_expr(item) for item in node.items]
    return _with_comments(ListExpr(items, force_multiline=node.multiline), node.comments)


@to_node.register
def _(node: KeyValueNode) -> Stmt:
    return _with_comments(KeyValueExpr(_expr(node.key), _expr(node.value)), node.comments)


@to_node.register
def _(node: DictNode) -> Stmt:
    entries = [_key_value(entry) for entry in node.entries]
    return _with_comments(DictExpr(entries, force_multiline=node.multiline), node.comments)


@to_node.register
def _(node: CallNode) -> Stmt:
    call = CallExpr(_expr(node.func), [_expr(arg) for arg in node.args], force_multiline=node.multiline)
    return _with_comments(call, node.comments)


@to_node.register
def _(node: AssignNode) -> Stmt:
    return _with_comments(AssignExpr(_expr(node.lhs), _expr(node.rhs)), node.comments)


@to_node.register
def _(node: BinaryNode) -> Stmt:
    return _with_comments(BinaryExpr(_expr(node.x), node.op, _expr(node.y)), node.comments)


@to_node.register
def _(node: DotNode) -> Stmt:
    return _with_comments(DotExpr(_expr(node.x), node.name), node.comments)


@to_node.register
def _(node: LoadNode) -> Stmt:
    symbols = [_load_symbol(symbol) for symbol in node.symbols]
    return _with_comments(LoadStmt(node.module, symbols), node.comments)


@to_node.register
def _(node: CommentNode) -> Stmt:
    return _with_comments(CommentBlock(), node.comments)


def _expr(node: ExprNode) -> Expr:
    return to_node(node)  # type: ignore[return-value]


def _key_value(node: KeyValueNode) -> KeyValueExpr:
    return to_node(node)  # type: ignore[return-value]


def _load_symbol(payload: LoadSymbolPayload) -> LoadSymbol:
    symbol = LoadSymbol(payload.name, payload.source or payload.name)
    symbol.comments.before.extend(payload.comments.before)
    symbol.comments.suffix.extend(payload.comments.suffix)
    symbol.comments.after.extend(payload.comments.after)
    return symbol


# Tree -> payload
#
# Optional fields are only set when they carry something, so that dumping
# with ``exclude_unset`` keeps documents small.

_OPTIONAL_FIELDS = frozenset(
    {"comments", "before", "suffix", "after", "items", "entries", "args", "multiline", "symbols", "source"}
)


M = TypeVar("M", bound="JsonTreeModel")


def _build(model: type[M], **fields: object) -> M:
    present = {key: value for key, value in fields.items() if key not in _OPTIONAL_FIELDS or value}
    return model(**present)


def from_file(file: File) -> DocumentPayload:
    """Payload of ``file`` as it stands; private attributes are never written."""

    return DocumentPayload(path=file.path, pkg=file.pkg, stmts=[from_node(stmt) for stmt in file.stmts])


def from_rules(rules: list[Rule]) -> DocumentPayload:
    return DocumentPayload(stmts=[from_node(rule.call) for rule in rules])


def _comments(comments: Comments) -> CommentsPayload | None:
    if not (comments.before or comments.suffix or comments.after):
        return None
    return _build(
        CommentsPayload,
        before=list(comments.before),
        suffix=list(comments.suffix),
        after=list(comments.after),
    )


@singledispatch
def from_node(node: object) -> StmtNode:
    raise TypeError(f"cannot serialise {type(node).__name__}")


@from_node.register
def _(node: StringExpr) -> StmtNode:
    return _build(StringNode, type="string", value=node.value, comments=_comments(node.comments))


@from_node.register
def _(node: LiteralExpr) -> StmtNode:
    return _build(LiteralNode, type="literal", token=node.token, comments=_comments(node.comments))


@from_node.register
def _(node: Ident) -> StmtNode:
    return _build(IdentNode, type="ident", name=node.name, comments=_comments(node.comments))


@from_node.register
def _(node: ListExpr) -> StmtNode:
    return _build(
        ListNode,
        type="list",
        items=[from_node(item) for item in node.items],
        multiline=node.force_multiline,
        comments=_comments(node.comments),
    )


@from_node.register
def _(node: KeyValueExpr) -> StmtNode:
    return _build(
        KeyValueNode,
        type="key_value",
        key=from_node(node.key),
        value=from_node(node.value),
        comments=_comments(node.comments),
    )


@from_node.register
def _(node: DictExpr) -> StmtNode:
    return _build(
        DictNode,
        type="dict",
        entries=[from_node(entry) for entry in node.entries],
        multiline=node.force_multiline,
        comments=_comments(node.comments),
    )


@from_node.register
def _(node: CallExpr) -> StmtNode:
    return _build(
        CallNode,
        type="call",
        func=from_node(node.func),
        args=[from_node(arg) for arg in node.args],
        multiline=node.force_multiline,
        comments=_comments(node.comments),
    )


@from_node.register
def _(node: AssignExpr) -> StmtNode:
    return _build(
        AssignNode,
        type="assign",
        lhs=from_node(node.lhs),
        rhs=from_node(node.rhs),
        comments=_comments(node.comments),
    )


@from_node.register
def _(node: BinaryExpr) -> StmtNode:
    return _build(
        BinaryNode,
        type="binary",
        x=from_node(node.x),
        op=node.op,
        y=from_node(node.y),
        comments=_comments(node.comments),
    )


@from_node.register
def _(node: DotExpr) -> StmtNode:
    return _build(DotNode, type="dot", x=from_node(node.x), name=node.name, comments=_comments(node.comments))


@from_node.register
def _(node: LoadStmt) -> StmtNode:
    symbols = [
        _build(
            LoadSymbolPayload,
            name=symbol.local,
            source=symbol.source if symbol.aliased else None,
            comments=_comments(symbol.comments),
        )
        for symbol in node.symbols
    ]
    return _build(LoadNode, type="load", module=node.module, symbols=symbols, comments=_comments(node.comments))


@from_node.register
def _(node: CommentBlock) -> StmtNode:
    return _build(CommentNode, type="comment", comments=_comments(node.comments))
