"""Pair a generated rule with the existing rule it corresponds to."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from .contracts import MatchKind, RuleMatch
from .errors import AmbiguousMatchError, KindConflictError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from buildmerge.config.policy import MergePolicy
    from buildmerge.domain.rule import Rule

log = getLogger(__name__)


def find_match(candidates: Sequence[Rule], target: Rule, policy: MergePolicy) -> RuleMatch | None:
    """Find the existing rule ``target`` should be merged into.

    In order of preference: the rule with the same name (which must have the
    same kind), a rule of the same kind sharing one of the kind's match
    attributes, then the only rule of the kind for kinds that match any
    instance. Returns ``None`` when nothing matches.

    Raises ``KindConflictError`` or ``AmbiguousMatchError`` when the match is
    not unique.
    """

    name = target.name
    kind = target.kind
    name_matches = [rule for rule in candidates if rule.name == name] if name else []
    kind_matches = [rule for rule in candidates if rule.kind == kind]

    conflicting = [rule for rule in name_matches if rule.kind != kind]
    if conflicting:
        raise KindConflictError(
            f"could not merge {kind}({name}): a rule of the same name has kind {conflicting[0].kind}",
            kind=kind,
            name=name,
            candidates=tuple(name_matches),
        )
    if len(name_matches) > 1:
        raise AmbiguousMatchError(
            f"could not merge {kind}({name}): multiple rules have the same name",
            kind=kind,
            name=name,
            candidates=tuple(name_matches),
        )
    if name_matches:
        return RuleMatch(name_matches[0], MatchKind.NAME)

    info = policy.kind_info(kind)
    for key in info.match_attrs:
        value = target.attr_string(key)
        if not value:
            continue
        attr_matches = [rule for rule in kind_matches if rule.attr_string(key) == value]
        if len(attr_matches) == 1:
            log.debug("Matched %s(%s) to %s by %s", kind, name, attr_matches[0].name, key)
            return RuleMatch(attr_matches[0], MatchKind.ATTRIBUTE, key)
        if len(attr_matches) > 1:
            raise AmbiguousMatchError(
                f"could not merge {kind}({name}): multiple rules have the same attribute {key} = {value!r}",
                kind=kind,
                name=name,
                candidates=tuple(attr_matches),
            )

    if info.match_any:
        if len(kind_matches) == 1:
            return RuleMatch(kind_matches[0], MatchKind.KIND)
        if len(kind_matches) > 1:
            raise AmbiguousMatchError(
                f"could not merge {kind}({name}): multiple rules have the same kind but different names",
                kind=kind,
                name=name,
                candidates=tuple(kind_matches),
            )
    return None
