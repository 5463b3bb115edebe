from __future__ import annotations

import pytest

from buildmerge.domain.label import Label, LabelError, is_local_reference, parse_label


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (":foo", Label(name="foo", relative=True)),
        ("foo", Label(name="foo", relative=True)),
        ("//pkg/sub:foo", Label(pkg="pkg/sub", name="foo")),
        ("//pkg/sub", Label(pkg="pkg/sub", name="sub")),
        ("@repo//pkg:foo", Label(repo="repo", pkg="pkg", name="foo")),
        ("@repo", Label(repo="repo", name="repo")),
        (
            "@io_bazel_rules_go//go/platform:linux_amd64",
            Label(repo="io_bazel_rules_go", pkg="go/platform", name="linux_amd64"),
        ),
    ],
)
def test_parse_label(value: str, expected: Label) -> None:
    assert parse_label(value) == expected


@pytest.mark.parametrize("value", ["", " :foo", "//pkg:", "//pkg:a:b", ":with space"])
def test_parse_label_rejects_malformed_values(value: str) -> None:
    with pytest.raises(LabelError):
        parse_label(value)


def test_label_str_round_trips_common_forms() -> None:
    for value in (":foo", "//pkg:foo", "@repo//pkg:foo", "//pkg/sub"):
        assert str(parse_label(value)) == value


def test_is_local_reference() -> None:
    assert is_local_reference(":foo")
    assert not is_local_reference(":")
    assert not is_local_reference("//pkg:foo")
