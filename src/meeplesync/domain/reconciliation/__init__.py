"""Reconciliation of the external board-game catalog into the local catalog.

Layered flow of one run:
1) validate the request and seed the frontier
2) collect related ids level by level, dropping noise expansions
3) resolve each id against the local catalog (import, resync or skip)
4) persist relation edges idempotently
5) stream progress events to the caller
"""

from __future__ import annotations

from .analysis import ImportAnalysis, SeedAnalysis, SeedStatus, analyze
from .backfill import (
    BackfillPlan,
    MissingReference,
    ReferenceReason,
    UnknownFamilyError,
    find_missing_references,
    import_missing,
    plan_backfill,
)
from .families import FamilyLinker, family_slug
from .frontier import (
    CollectionResult,
    Frontier,
    FrontierState,
    RelationGraphCollector,
    RelationMode,
)
from .matching import MatchResult, MatchType, match_entity
from .noise import Classification, NoiseClassifier
from .normalize import normalize_name
from .orchestrator import (
    InvalidRequestError,
    ReconciliationOrchestrator,
    ReconciliationRequest,
    RecordUnavailableError,
)
from .relations import (
    LinkReport,
    RelationLinker,
    RelationWriter,
    SelfRelationError,
    UnknownGameError,
    add_relation,
    relink_from_snapshots,
)

__all__ = [
    "BackfillPlan",
    "Classification",
    "CollectionResult",
    "FamilyLinker",
    "Frontier",
    "FrontierState",
    "ImportAnalysis",
    "InvalidRequestError",
    "LinkReport",
    "MatchResult",
    "MatchType",
    "MissingReference",
    "NoiseClassifier",
    "ReconciliationOrchestrator",
    "ReconciliationRequest",
    "RecordUnavailableError",
    "ReferenceReason",
    "RelationGraphCollector",
    "RelationLinker",
    "RelationMode",
    "RelationWriter",
    "SeedAnalysis",
    "SeedStatus",
    "SelfRelationError",
    "UnknownFamilyError",
    "UnknownGameError",
    "add_relation",
    "analyze",
    "family_slug",
    "find_missing_references",
    "import_missing",
    "match_entity",
    "normalize_name",
    "plan_backfill",
    "relink_from_snapshots",
]
