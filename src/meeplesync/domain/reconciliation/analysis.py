"""Read-only preview of what a reconciliation run would do."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Any

from meeplesync.config.reconciliation import ReconciliationConfig

from .frontier import RelationGraphCollector, RelationMode
from .matching import MatchType, match_entity
from .noise import NoiseClassifier

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from meeplesync.domain.model import ExternalId, ExternalRecord, Game
    from meeplesync.domain.ports import ReconciliationUnitOfWork, SourceCatalog

    from .orchestrator import ReconciliationRequest

log = getLogger(__name__)


class SeedStatus(StrEnum):
    NEW = "new"
    EXISTS = "exists"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class SeedAnalysis:
    external_id: ExternalId
    status: SeedStatus
    name: str | None = None
    local_id: UUID | None = None
    match_type: MatchType = MatchType.NONE
    matched_name: str | None = None
    needs_review: bool = False
    expansions: int = 0
    base_games: int = 0
    reimplementations: int = 0
    error: str | None = None

    def to_json(self) -> dict[str, Any]:
        return {
            "external_id": self.external_id,
            "status": self.status.value,
            "name": self.name,
            "local_id": str(self.local_id) if self.local_id else None,
            "match_type": self.match_type.value,
            "matched_name": self.matched_name,
            "needs_review": self.needs_review,
            "relations": {
                "expansions": self.expansions,
                "base_games": self.base_games,
                "reimplementations": self.reimplementations,
            },
            "error": self.error,
        }


@dataclass(slots=True, frozen=True)
class ImportAnalysis:
    seeds: tuple[SeedAnalysis, ...]
    collected_ids: tuple[ExternalId, ...] = ()
    filtered: dict[ExternalId, str] = field(default_factory=dict["ExternalId", str])
    estimated_seconds: int = 0

    def count(self, status: SeedStatus) -> int:
        return sum(1 for seed in self.seeds if seed.status is status)

    def to_json(self) -> dict[str, Any]:
        return {
            "games": [seed.to_json() for seed in self.seeds],
            "collected_ids": list(self.collected_ids),
            "filtered": [
                {"external_id": external_id, "reason": reason}
                for external_id, reason in self.filtered.items()
            ],
            "totals": {
                "new": self.count(SeedStatus.NEW),
                "exists": self.count(SeedStatus.EXISTS),
                "errors": self.count(SeedStatus.ERROR),
                "needs_review": sum(1 for seed in self.seeds if seed.needs_review),
                "related": len(self.collected_ids),
                "filtered": len(self.filtered),
            },
            "estimated_seconds": self.estimated_seconds,
        }


def analyze(
    request: ReconciliationRequest,
    source: SourceCatalog,
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    *,
    config: ReconciliationConfig | None = None,
) -> ImportAnalysis:
    """Describe the seeds of ``request`` and the related ids it would pull in.

    Nothing is written; the unit of work is only used for lookups.
    """

    config = config or ReconciliationConfig()
    seeds = request.validated_seeds(max_seeds=config.max_seeds)
    collector = RelationGraphCollector(
        source, NoiseClassifier(config.noise), mode=request.relation_mode
    )
    collected: tuple[ExternalId, ...] = ()
    filtered: dict[ExternalId, str] = {}
    if request.relation_mode is RelationMode.NONE:
        records = {
            external_id: record
            for external_id, record in source.fetch_many(seeds).items()
            if record is not None
        }
    else:
        result = collector.collect(
            seeds,
            max_depth=request.depth_or(config.default_max_depth),
            excluded=request.excluded_ids,
        )
        records = result.records
        collected = result.discovered
        filtered = result.filtered

    with unit_of_work_factory() as uow:
        games = uow.repositories.games
        existing = games.get_many_by_external_ids(seeds)
        unlinked = games.list_unlinked()
        analyses = tuple(
            _analyze_seed(
                seed,
                records.get(seed),
                existing.get(seed),
                unlinked,
                request.relation_mode,
                config.contains_overlap,
            )
            for seed in seeds
        )

    estimated = math.ceil((len(seeds) + len(collected)) * config.seconds_per_game)
    log.info(
        "Analyzed %s seeds: %s related, %s filtered", len(seeds), len(collected), len(filtered)
    )
    return ImportAnalysis(
        seeds=analyses,
        collected_ids=collected,
        filtered=filtered,
        estimated_seconds=estimated,
    )


def _analyze_seed(
    external_id: ExternalId,
    record: ExternalRecord | None,
    existing: Game | None,
    unlinked: list[Game],
    mode: RelationMode,
    contains_overlap: float,
) -> SeedAnalysis:
    if record is None:
        return SeedAnalysis(
            external_id=external_id,
            status=SeedStatus.ERROR,
            name=existing.name if existing else None,
            error="Record not available from the external catalog",
        )

    relations: dict[str, int] = {}
    if mode is not RelationMode.NONE:
        relations["base_games"] = len(record.base_game_ids)
    if mode is RelationMode.ALL:
        relations["expansions"] = len(record.expansion_ids)
        relations["reimplementations"] = len(record.reimplements_ids) + len(
            record.reimplemented_by_ids
        )

    if existing is not None:
        return SeedAnalysis(
            external_id=external_id,
            status=SeedStatus.EXISTS,
            name=record.name,
            local_id=existing.id,
            match_type=MatchType.EXACT_ID,
            matched_name=existing.name,
            **relations,
        )

    match = match_entity(
        record.name,
        unlinked,
        family_hint=record.series_name,
        contains_overlap=contains_overlap,
    )
    return SeedAnalysis(
        external_id=external_id,
        status=SeedStatus.NEW,
        name=record.name,
        local_id=match.entity.id if match.entity else None,
        match_type=match.match_type,
        matched_name=match.entity.name if match.entity else None,
        needs_review=not match.confident,
        **relations,
    )
