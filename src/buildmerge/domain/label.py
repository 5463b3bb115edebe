"""Minimal label parsing for descriptor references.

Only the pieces the merge core needs: splitting ``@repo//pkg:name`` into
parts so platform-conditional keys can be classified, and recognising
same-package references (``:name``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_INVALID = re.compile(r"[\s:]")


class LabelError(ValueError):
    """Raised when a string is not a well-formed label."""


@dataclass(frozen=True, slots=True)
class Label:
    repo: str = ""
    pkg: str = ""
    name: str = ""
    relative: bool = False

    def __str__(self) -> str:
        if self.relative:
            return f":{self.name}"
        repo = f"@{self.repo}" if self.repo else ""
        if self.pkg.rsplit("/", 1)[-1] == self.name and self.pkg:
            return f"{repo}//{self.pkg}"
        return f"{repo}//{self.pkg}:{self.name}"


def parse_label(value: str) -> Label:
    """Parse ``value`` as an absolute, repository or package-relative label."""

    if not value or value.strip() != value:
        raise LabelError(f"label is empty or padded: {value!r}")

    repo = ""
    rest = value
    if rest.startswith("@"):
        repo, sep, rest = rest[1:].partition("//")
        if not sep:
            _check_part(repo, value)
            return Label(repo=repo, pkg="", name=repo)
        rest = "//" + rest

    if rest.startswith("//"):
        pkg, sep, name = rest[2:].partition(":")
        if not sep:
            name = pkg.rsplit("/", 1)[-1]
        _check_part(pkg, value, allow_empty=True)
        _check_part(name, value)
        return Label(repo=repo, pkg=pkg, name=name)

    name = rest.removeprefix(":")
    _check_part(name, value)
    return Label(name=name, relative=True)


def is_local_reference(value: str) -> bool:
    """Whether ``value`` names a rule in the same package (``:name``)."""

    return value.startswith(":") and len(value) > 1


def _check_part(part: str, value: str, *, allow_empty: bool = False) -> None:
    if not part and not allow_empty:
        raise LabelError(f"label has an empty component: {value!r}")
    if _INVALID.search(part):
        raise LabelError(f"label contains invalid characters: {value!r}")
