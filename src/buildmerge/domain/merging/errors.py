"""Error taxonomy for rule matching and merging.

Match errors and malformed expressions are recoverable: the merge skips the
affected rule or attribute and reports a diagnostic. Structural invariant
errors signal a broken generator contract and abort the affected attribute.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from buildmerge.domain.rule import Rule


class MergeError(Exception):
    """Base class for merge failures."""


class MatchError(MergeError):
    """Raised when a generated rule cannot be paired with an existing rule."""

    def __init__(self, message: str, *, kind: str, name: str, candidates: tuple[Rule, ...]) -> None:
        self.kind = kind
        self.name = name
        self.candidates = candidates
        super().__init__(message)


class AmbiguousMatchError(MatchError):
    """Several existing rules match equally well."""


class KindConflictError(MatchError):
    """An existing rule has the same name but a different kind."""


class MalformedExpressionError(MergeError):
    """An attribute value does not have the list/select composite shape."""


class StructuralInvariantError(MergeError):
    """A generated expression breaks the shape the generator promised."""


class MissingRepositoryError(MergeError):
    """A file loads from a repository it does not declare."""
