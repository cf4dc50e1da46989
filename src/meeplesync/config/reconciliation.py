"""Tunable heuristics for catalog reconciliation.

The engagement threshold and the containment overlap ratio were tuned by hand
against real catalog data; treat them as knobs, not as correctness guarantees.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .env import env_float, env_int
from .errors import ConfigurationError

DEFAULT_MIN_ENGAGEMENT = 50
DEFAULT_CONTAINS_OVERLAP = 0.5
DEFAULT_MAX_DEPTH = 3
MAX_SEEDS_PER_RUN = 100
ESTIMATED_SECONDS_PER_GAME = 1.5

DEFAULT_PROMO_NAME_PATTERNS: tuple[str, ...] = (
    r"\bpromo\b",
    r"\bpromotional\b",
    r"\bmini.?expansion\b",
    r"\bbonus card",
    r"\bextra card",
)

DEFAULT_ACCESSORY_NAME_PATTERNS: tuple[str, ...] = (
    r"\bsticker set\b",
    r"\bsticker.?pack\b",
    r"\bsleeve",
    r"\borganizer\b",
    r"\binsert\b",
    r"\bupgrade kit\b",
    r"\breplacement\b",
    r"\bstorage\b",
    r"\bplaymat\b",
    r"\bplay mat\b",
    r"\bcoin set\b",
    r"\bmetal coin",
    r"\btoken set\b",
    r"\btoken pack\b",
    r"\btoken upgrade",
    r"\bresource upgrade",
    r"\bdeluxe token",
    r"\bdeluxe component",
    r"\b3d.?print",
    r"\bremovable sticker",
)

DEFAULT_PROMO_FAMILY_PATTERNS: tuple[str, ...] = (
    "promotional",
    "promo",
    "bgg store",
    "kickstarter exclusive",
    "convention exclusive",
    "bonus content",
)

DEFAULT_ACCESSORY_FAMILY_PATTERNS: tuple[str, ...] = (
    "reset/recharge",
    "upgrade kit",
    "storage solution",
    "game insert",
    "organizer",
    "component upgrade",
    "accessories",
)


@dataclass(frozen=True, slots=True)
class NoiseRules:
    """Pattern sets used to tell real expansions from promos, fan content and accessories."""

    min_engagement: int = DEFAULT_MIN_ENGAGEMENT
    fan_family_marker: str = "fan expansion"
    promo_name_patterns: tuple[str, ...] = DEFAULT_PROMO_NAME_PATTERNS
    accessory_name_patterns: tuple[str, ...] = DEFAULT_ACCESSORY_NAME_PATTERNS
    promo_family_patterns: tuple[str, ...] = DEFAULT_PROMO_FAMILY_PATTERNS
    accessory_family_patterns: tuple[str, ...] = DEFAULT_ACCESSORY_FAMILY_PATTERNS


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    noise: NoiseRules = field(default_factory=NoiseRules)
    contains_overlap: float = DEFAULT_CONTAINS_OVERLAP
    default_max_depth: int = DEFAULT_MAX_DEPTH
    max_seeds: int = MAX_SEEDS_PER_RUN
    seconds_per_game: float = ESTIMATED_SECONDS_PER_GAME


def get_reconciliation_config() -> ReconciliationConfig:
    min_engagement = env_int("MEEPLESYNC_MIN_ENGAGEMENT", DEFAULT_MIN_ENGAGEMENT)
    if min_engagement < 0:
        raise ConfigurationError("MEEPLESYNC_MIN_ENGAGEMENT must be non-negative")
    overlap = env_float("MEEPLESYNC_CONTAINS_OVERLAP", DEFAULT_CONTAINS_OVERLAP)
    if not 0.0 <= overlap < 1.0:
        raise ConfigurationError("MEEPLESYNC_CONTAINS_OVERLAP must be in [0, 1)")
    max_depth = env_int("MEEPLESYNC_MAX_DEPTH", DEFAULT_MAX_DEPTH)
    if max_depth < 0:
        raise ConfigurationError("MEEPLESYNC_MAX_DEPTH must be non-negative")
    return ReconciliationConfig(
        noise=NoiseRules(min_engagement=min_engagement),
        contains_overlap=overlap,
        default_max_depth=max_depth,
    )
