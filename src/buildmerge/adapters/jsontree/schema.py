"""Pydantic models describing descriptor trees exchanged as JSON.

Every node carries a ``type`` discriminator and optional ``comments``.
Call nodes of generated rules may also carry ``private`` attributes and the
names of ``sorted_attrs`` whose lists are kept in label order.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, JsonValue


class JsonTreeModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class CommentsPayload(JsonTreeModel):
    before: list[str] = Field(default_factory=list)
    suffix: list[str] = Field(default_factory=list)
    after: list[str] = Field(default_factory=list)


class NodePayload(JsonTreeModel):
    comments: CommentsPayload = Field(default_factory=CommentsPayload)


class StringNode(NodePayload):
    type: Literal["string"]
    value: str


class LiteralNode(NodePayload):
    type: Literal["literal"]
    token: str


class IdentNode(NodePayload):
    type: Literal["ident"]
    name: str


class ListNode(NodePayload):
    type: Literal["list"]
    items: list[ExprNode] = Field(default_factory=list)
    multiline: bool = False


class KeyValueNode(NodePayload):
    type: Literal["key_value"]
    key: ExprNode
    value: ExprNode


class DictNode(NodePayload):
    type: Literal["dict"]
    entries: list[KeyValueNode] = Field(default_factory=list)
    multiline: bool = False


class CallNode(NodePayload):
    type: Literal["call"]
    func: ExprNode
    args: list[ExprNode] = Field(default_factory=list)
    multiline: bool = False
    private: dict[str, JsonValue] = Field(default_factory=dict)
    sorted_attrs: list[str] = Field(default_factory=list)


class AssignNode(NodePayload):
    type: Literal["assign"]
    lhs: ExprNode
    rhs: ExprNode


class BinaryNode(NodePayload):
    type: Literal["binary"]
    x: ExprNode
    op: str
    y: ExprNode


class DotNode(NodePayload):
    type: Literal["dot"]
    x: ExprNode
    name: str


class LoadSymbolPayload(JsonTreeModel):
    name: str
    source: str | None = None
    comments: CommentsPayload = Field(default_factory=CommentsPayload)


class LoadNode(NodePayload):
    type: Literal["load"]
    module: str
    symbols: list[LoadSymbolPayload] = Field(default_factory=list)


class CommentNode(NodePayload):
    type: Literal["comment"]


ExprNode = Annotated[
    StringNode
    | LiteralNode
    | IdentNode
    | ListNode
    | KeyValueNode
    | DictNode
    | CallNode
    | AssignNode
    | BinaryNode
    | DotNode,
    Field(discriminator="type"),
]
StmtNode = Annotated[
    StringNode
    | LiteralNode
    | IdentNode
    | ListNode
    | KeyValueNode
    | DictNode
    | CallNode
    | AssignNode
    | BinaryNode
    | DotNode
    | LoadNode
    | CommentNode,
    Field(discriminator="type"),
]


class DocumentPayload(JsonTreeModel):
    """One descriptor file, or a list of generated rules."""

    path: str = ""
    pkg: str = ""
    stmts: list[StmtNode] = Field(default_factory=list)


for _model in (ListNode, KeyValueNode, DictNode, CallNode, AssignNode, BinaryNode, DotNode, DocumentPayload):
    _model.model_rebuild()
