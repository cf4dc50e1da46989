"""Separate real expansions from fan content, promos and accessories."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from meeplesync.config.reconciliation import NoiseRules
from meeplesync.domain.model import EntityKind

if TYPE_CHECKING:
    from collections.abc import Callable

    from meeplesync.domain.model import CandidateEntity

log = getLogger(__name__)

type _Rule = Callable[[CandidateEntity], str | None]


@dataclass(slots=True, frozen=True)
class Classification:
    filter: bool
    reason: str | None = None


KEEP = Classification(filter=False)


@dataclass(slots=True)
class NoiseClassifier:
    """Apply :class:`NoiseRules` to expansion candidates; first matching rule wins."""

    rules: NoiseRules = field(default_factory=NoiseRules)
    _promo_names: tuple[re.Pattern[str], ...] = field(init=False, repr=False)
    _accessory_names: tuple[re.Pattern[str], ...] = field(init=False, repr=False)
    _checks: tuple[_Rule, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._promo_names = _compile(self.rules.promo_name_patterns)
        self._accessory_names = _compile(self.rules.accessory_name_patterns)
        self._checks = (
            self._low_engagement,
            self._fan_family,
            self._promo_name,
            self._accessory_name,
            self._promo_family,
            self._accessory_family,
        )

    def classify(self, candidate: CandidateEntity) -> Classification:
        if candidate.kind is not EntityKind.EXPANSION:
            return KEEP
        for check in self._checks:
            reason = check(candidate)
            if reason is not None:
                log.debug(
                    "Filtered candidate external_id=%s name=%r: %s",
                    candidate.external_id,
                    candidate.name,
                    reason,
                )
                return Classification(filter=True, reason=reason)
        return KEEP

    def _low_engagement(self, candidate: CandidateEntity) -> str | None:
        if candidate.engagement_count < self.rules.min_engagement:
            return f"Fan expansion ({candidate.engagement_count} ratings)"
        return None

    def _fan_family(self, candidate: CandidateEntity) -> str | None:
        marker = self.rules.fan_family_marker.lower()
        if any(marker in tag.lower() for tag in candidate.family_tags):
            return "Fan expansion family"
        return None

    def _promo_name(self, candidate: CandidateEntity) -> str | None:
        if any(pattern.search(candidate.name) for pattern in self._promo_names):
            return "Promo (name match)"
        return None

    def _accessory_name(self, candidate: CandidateEntity) -> str | None:
        if any(pattern.search(candidate.name) for pattern in self._accessory_names):
            return "Accessory (name match)"
        return None

    def _promo_family(self, candidate: CandidateEntity) -> str | None:
        if _family_matches(candidate, self.rules.promo_family_patterns):
            return "Promo family"
        return None

    def _accessory_family(self, candidate: CandidateEntity) -> str | None:
        if _family_matches(candidate, self.rules.accessory_family_patterns):
            return "Accessory family"
        return None


def _compile(patterns: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


def _family_matches(candidate: CandidateEntity, needles: tuple[str, ...]) -> bool:
    tags = [tag.lower() for tag in candidate.family_tags]
    return any(needle.lower() in tag for needle in needles for tag in tags)
