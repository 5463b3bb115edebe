from __future__ import annotations

from typing import TYPE_CHECKING

from buildmerge.config import GAZELLE_DEPS, RULES_GO_DEF, LoadInfo
from buildmerge.domain.merging import fix_load, fix_loads, new_load_index
from buildmerge.domain.merging.loads import used_symbols
from buildmerge.domain.rule import Load, Rule
from buildmerge.domain.syntax import CallExpr, DotExpr, Ident, attach_comments

from tests.support.syntax import call, load, make_file, strings

if TYPE_CHECKING:
    from buildmerge.config import MergePolicy
    from buildmerge.domain.rule import File

SRC = "@src//:defs.bzl"
KNOWN = (LoadInfo(name=SRC, symbols=("foo_binary", "foo_library")),)


def _loaded(file: File) -> list[tuple[str, list[str]]]:
    return [(member.name, member.symbols()) for member in file.loads]


def test_unused_symbol_is_replaced_by_used_one() -> None:
    file = make_file(load(SRC, "foo_binary"))
    Rule.new("foo_library", "lib").insert(file)

    fix_loads(file, KNOWN)
    file.sync()

    assert _loaded(file) == [(SRC, ["foo_library"])]
    assert file.loads[0].index == 0


def test_missing_load_is_created_at_the_top() -> None:
    file = make_file(call("foo_binary", name="bin"), call("foo_library", name="lib"))

    fix_loads(file, KNOWN)
    file.sync()

    assert _loaded(file) == [(SRC, ["foo_binary", "foo_library"])]
    assert file.loads[0].index == 0
    assert file.rules[0].index == 1


def test_load_without_used_symbols_is_deleted() -> None:
    stmt = attach_comments(load(SRC, "foo_binary"), before=["# stale"])
    file = make_file(stmt, call("other", name="x"))

    fix_loads(file, KNOWN)
    file.sync()

    assert file.loads == []
    assert stmt not in file.stmts


def test_unknown_symbols_of_known_source_are_kept() -> None:
    file = make_file(load(SRC, "helper", "foo_binary"), call("foo_library", name="lib"))

    fix_loads(file, KNOWN)
    file.sync()

    assert _loaded(file) == [(SRC, ["foo_library", "helper"])]


def test_unknown_sources_are_untouched() -> None:
    other = load("@other//:defs.bzl", "foo_library", "unused")
    file = make_file(other, call("foo_library", name="lib"))

    fix_loads(file, KNOWN)
    file.sync()

    assert _loaded(file) == [("@other//:defs.bzl", ["foo_library", "unused"])]


def test_duplicate_loads_of_a_known_source_are_merged_into_the_first() -> None:
    file = make_file(load(SRC, "foo_binary"), load(SRC, "foo_library"), call("foo_library", name="lib"))

    fix_loads(file, KNOWN)
    file.sync()

    assert _loaded(file) == [(SRC, ["foo_library"])]


def test_load_comments_survive_modification() -> None:
    stmt = attach_comments(load(SRC, "foo_binary"), before=["# rules"], suffix=["# trailing"])
    file = make_file(stmt, call("foo_library", name="lib"), call("foo_binary", name="bin"))

    fix_loads(file, KNOWN)
    file.sync()

    assert file.loads[0].load is stmt
    assert stmt.comments.before == ["# rules"]
    assert stmt.comments.suffix == ["# trailing"]
    assert file.loads[0].symbols() == ["foo_binary", "foo_library"]


def test_used_symbols_include_wrapped_kinds_and_dotted_calls() -> None:
    file = make_file(
        call("wrapper", Ident("foo_binary"), name="x"),
        CallExpr(func=DotExpr(Ident("native"), "cc_library")),
        call("outer", srcs=CallExpr(func=Ident("glob"), args=[strings("*.go")])),
    )

    assert set(used_symbols(file)) == {"wrapper", "foo_binary", "native", "outer", "glob"}


def test_wrapped_kind_keeps_its_load() -> None:
    file = make_file(load(SRC, "foo_binary"), call("wrapper", Ident("foo_binary"), name="x"))

    fix_loads(file, KNOWN)
    file.sync()

    assert _loaded(file) == [(SRC, ["foo_binary"])]


def test_fix_load() -> None:
    known = {"a": SRC, "b": SRC}

    assert fix_load(None, SRC, set(), known) is None
    created = fix_load(None, SRC, {"b", "a"}, known)
    assert created is not None
    assert created.symbols() == ["a", "b"]

    existing = Load(load(SRC, "a", "extra"))
    assert fix_load(existing, SRC, {"b"}, known) is existing
    assert existing.symbols() == ["b", "extra"]


def test_new_load_index_follows_named_calls() -> None:
    file = make_file(
        call("http_archive", name="io_bazel_rules_go"),
        call("go_rules_dependencies"),
        call("go_register_toolchains"),
        call("go_repository", name="com_example"),
    )

    assert new_load_index(file, ()) == 0
    assert new_load_index(file, ("go_rules_dependencies", "go_register_toolchains")) == 3
    assert new_load_index(file, ("missing",)) == 0


def test_workspace_load_is_inserted_after_setup_calls(policy: MergePolicy) -> None:
    file = make_file(
        load(RULES_GO_DEF, "go_register_toolchains", "go_rules_dependencies"),
        call("go_rules_dependencies"),
        call("go_register_toolchains"),
        call("go_repository", name="com_example", importpath="example.com"),
    )

    fix_loads(file, policy.loads)
    file.sync()

    assert _loaded(file) == [
        (RULES_GO_DEF, ["go_register_toolchains", "go_rules_dependencies"]),
        (GAZELLE_DEPS, ["go_repository"]),
    ]
    assert file.loads[1].index == 3
