from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from buildmerge.adapters.jsontree import DescriptorFormatError
from buildmerge.app import fix_descriptor_loads, merge_descriptor, merge_rules_into_file, resolve_policy
from buildmerge.config import GAZELLE_DEPS, POLICY_ENV_VAR, RULES_GO_DEF, MergeStage
from buildmerge.domain.merging import MissingRepositoryError
from buildmerge.domain.syntax import CommentBlock, attach_comments

from tests.support.syntax import call, make_file, rule

if TYPE_CHECKING:
    from pathlib import Path

    from buildmerge.config import MergePolicy


def _ident(name: str) -> dict[str, object]:
    return {"type": "ident", "name": name}


def _string(value: str) -> dict[str, object]:
    return {"type": "string", "value": value}


def _call(kind: str, *args: dict[str, object], **attrs: dict[str, object]) -> dict[str, object]:
    assigns = [{"type": "assign", "lhs": _ident(key), "rhs": value} for key, value in attrs.items()]
    return {"type": "call", "func": _ident(kind), "args": [*args, *assigns]}


def _strings(*values: str) -> dict[str, object]:
    return {"type": "list", "items": [_string(value) for value in values]}


def _write(path: Path, stmts: list[dict[str, object]]) -> Path:
    path.write_text(json.dumps({"path": "pkg/BUILD.bazel", "pkg": "pkg", "stmts": stmts}), encoding="utf-8")
    return path


def _library(*srcs: str, name: str = "go_default_library") -> dict[str, object]:
    return _call("go_library", name=_string(name), srcs=_strings(*srcs), importpath=_string("example.com/pkg"))


def _srcs(stmt: dict[str, object]) -> list[str]:
    for arg in stmt["args"]:  # type: ignore[union-attr]
        if arg["lhs"]["name"] == "srcs":
            return [item["value"] for item in arg["rhs"]["items"]]
    raise AssertionError("no srcs attribute")


def test_merge_descriptor_merges_and_adds_loads(tmp_path: Path, policy: MergePolicy) -> None:
    old = _write(tmp_path / "old.json", [_library("a.go", "b.go")])
    gen = _write(tmp_path / "gen.json", [_library("a.go", "c.go")])
    output = tmp_path / "out.json"

    report = merge_descriptor(old_path=old, gen_path=gen, output_path=output, policy=policy)

    assert not report.ignored
    assert len(report.merged) == 1
    stmts = json.loads(output.read_text(encoding="utf-8"))["stmts"]
    assert stmts[0]["type"] == "load"
    assert stmts[0]["module"] == RULES_GO_DEF
    assert [symbol["name"] for symbol in stmts[0]["symbols"]] == ["go_library"]
    assert _srcs(stmts[1]) == ["a.go", "c.go"]
    # the input is left alone when an output path is given
    assert json.loads(old.read_text(encoding="utf-8"))["stmts"] == [_library("a.go", "b.go")]


def test_merge_descriptor_deletes_rules_matched_by_empty_rules(tmp_path: Path, policy: MergePolicy) -> None:
    old = _write(tmp_path / "old.json", [_library("a.go"), _call("go_test", name=_string("go_default_test"))])
    gen = _write(tmp_path / "gen.json", [_library("a.go")])
    empty = _write(tmp_path / "empty.json", [_call("go_test", name=_string("go_default_test"))])

    report = merge_descriptor(old_path=old, gen_path=gen, empty_path=empty, policy=policy)

    assert [deleted.kind for deleted in report.deleted] == ["go_test"]
    stmts = json.loads(old.read_text(encoding="utf-8"))["stmts"]
    assert [stmt["func"]["name"] for stmt in stmts if stmt["type"] == "call"] == ["go_library"]


def test_merge_descriptor_resolve_stage_leaves_sources(tmp_path: Path, policy: MergePolicy) -> None:
    old = _write(tmp_path / "old.json", [_library("a.go", "b.go")])
    gen = _write(tmp_path / "gen.json", [_library("a.go", "c.go")])

    merge_descriptor(old_path=old, gen_path=gen, policy=policy, stage=MergeStage.RESOLVE)

    stmts = json.loads(old.read_text(encoding="utf-8"))["stmts"]
    calls = [stmt for stmt in stmts if stmt["type"] == "call"]
    assert _srcs(calls[0]) == ["a.go", "b.go"]


def test_merge_descriptor_does_not_rewrite_ignored_files(tmp_path: Path, policy: MergePolicy) -> None:
    header = {"type": "comment", "comments": {"before": ["# gazelle:ignore"]}}
    old = _write(tmp_path / "old.json", [header, _library("a.go")])
    before = old.read_text(encoding="utf-8")
    gen = _write(tmp_path / "gen.json", [_library("b.go")])
    output = tmp_path / "out.json"

    report = merge_descriptor(old_path=old, gen_path=gen, output_path=output, policy=policy)

    assert report.ignored
    assert not output.exists()
    assert old.read_text(encoding="utf-8") == before


def test_merge_descriptor_reports_invalid_input(tmp_path: Path, policy: MergePolicy) -> None:
    old = tmp_path / "old.json"
    old.write_text('{"stmts": [{"type": "nope"}]}', encoding="utf-8")
    gen = _write(tmp_path / "gen.json", [])

    with pytest.raises(DescriptorFormatError, match="old.json"):
        merge_descriptor(old_path=old, gen_path=gen, policy=policy)


WORKSPACE_SETUP = [
    _call("go_rules_dependencies"),
    _call("go_register_toolchains"),
    _call("gazelle_dependencies"),
    _call("go_repository", name=_string("com_example_dep"), importpath=_string("example.com/dep")),
]


def test_fix_descriptor_loads_for_workspace(tmp_path: Path, policy: MergePolicy) -> None:
    gazelle = _call("http_archive", name=_string("bazel_gazelle"))
    path = _write(tmp_path / "WORKSPACE.json", [gazelle, *WORKSPACE_SETUP])

    file = fix_descriptor_loads(path, policy=policy, workspace=True)

    assert [load.name for load in file.loads] == [GAZELLE_DEPS]
    written = json.loads(path.read_text(encoding="utf-8"))["stmts"]
    assert [stmt["type"] for stmt in written] == ["call", "call", "call", "call", "load", "call"]


def test_fix_descriptor_loads_requires_gazelle_repository(tmp_path: Path, policy: MergePolicy) -> None:
    path = _write(tmp_path / "WORKSPACE.json", WORKSPACE_SETUP)
    before = path.read_text(encoding="utf-8")

    with pytest.raises(MissingRepositoryError, match="bazel_gazelle is not declared"):
        fix_descriptor_loads(path, policy=policy, workspace=True)

    assert path.read_text(encoding="utf-8") == before


def test_resolve_policy_prefers_flag_then_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    flagged = tmp_path / "flag.toml"
    flagged.write_text('directive_prefix = "flag:"\n', encoding="utf-8")
    from_env = tmp_path / "env.toml"
    from_env.write_text('directive_prefix = "env:"\n', encoding="utf-8")

    assert resolve_policy().directive_prefix == "gazelle:"

    monkeypatch.setenv(POLICY_ENV_VAR, str(from_env))
    assert resolve_policy().directive_prefix == "env:"
    assert resolve_policy(flagged, should_fix=True).directive_prefix == "flag:"
    assert resolve_policy(flagged, should_fix=True).should_fix


def test_ignored_file_is_not_fixed_before_merging(fixing_policy: MergePolicy) -> None:
    header = attach_comments(CommentBlock(), before=["# gazelle:ignore"])
    file = make_file(header, call("go_test", name="go_default_test", library=":go_default_library"))

    report = merge_rules_into_file(file, [rule("go_test", "go_default_test")], [], fixing_policy)

    assert report.ignored
    go_test = file.rules[0]
    assert go_test.attr_string("library") == ":go_default_library"
    assert go_test.attr("embed") is None
    assert not file.loads


def test_fix_descriptor_loads_leaves_ignored_file_alone(tmp_path: Path, policy: MergePolicy) -> None:
    header = {"type": "comment", "comments": {"before": ["# gazelle:ignore"]}}
    path = _write(tmp_path / "BUILD.json", [header, _library("a.go")])
    before = path.read_text(encoding="utf-8")

    file = fix_descriptor_loads(path, policy=policy)

    assert not file.loads
    assert path.read_text(encoding="utf-8") == before
