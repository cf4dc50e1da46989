"""Resolve external records to games already in the local catalog.

Tiers are evaluated in priority order and the first hit wins:

1. external identifier equality
2. normalized name equality
3. ``family + " " + name`` equality when a family hint is given
4. known name starts with the family and ends with the candidate name
5. containment in either direction with a sufficient length overlap
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from meeplesync.config.reconciliation import DEFAULT_CONTAINS_OVERLAP

from .normalize import normalize_name

if TYPE_CHECKING:
    from collections.abc import Sequence

    from meeplesync.domain.model import ExternalId, Game


class MatchType(StrEnum):
    EXACT_ID = "exact_id"
    EXACT_NAME = "exact_name"
    FAMILY_PREFIX = "family_prefix"
    FAMILY_SUFFIX = "family_suffix"
    FUZZY_CONTAINS = "fuzzy_contains"
    NONE = "none"


_UNCONFIDENT = frozenset({MatchType.FUZZY_CONTAINS, MatchType.NONE})


@dataclass(slots=True, frozen=True)
class MatchResult:
    entity: Game | None
    match_type: MatchType

    @property
    def confident(self) -> bool:
        """Whether the match is strong enough to adopt without review."""

        return self.entity is not None and self.match_type not in _UNCONFIDENT


NO_MATCH = MatchResult(entity=None, match_type=MatchType.NONE)


def match_entity(
    candidate_name: str,
    known: Sequence[Game],
    *,
    family_hint: str | None = None,
    external_id: ExternalId | None = None,
    contains_overlap: float = DEFAULT_CONTAINS_OVERLAP,
) -> MatchResult:
    if external_id is not None:
        for game in known:
            if game.external_id == external_id:
                return MatchResult(game, MatchType.EXACT_ID)

    target = normalize_name(candidate_name)
    if not target:
        return NO_MATCH
    names = [(game, normalize_name(game.name)) for game in known]

    for game, name in names:
        if name == target:
            return MatchResult(game, MatchType.EXACT_NAME)

    family = normalize_name(family_hint) if family_hint else ""
    if family:
        prefixed = normalize_name(f"{family_hint} {candidate_name}")
        for game, name in names:
            if name == prefixed:
                return MatchResult(game, MatchType.FAMILY_PREFIX)
        for game, name in names:
            if len(name) > len(family) and name.startswith(family) and name.endswith(target):
                return MatchResult(game, MatchType.FAMILY_SUFFIX)

    for game, name in names:
        if name and _overlaps(target, name, contains_overlap):
            return MatchResult(game, MatchType.FUZZY_CONTAINS)

    return NO_MATCH


def _overlaps(left: str, right: str, threshold: float) -> bool:
    if left not in right and right not in left:
        return False
    shorter, longer = sorted((len(left), len(right)))
    return shorter / longer > threshold
