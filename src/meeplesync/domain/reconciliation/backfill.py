"""Import games that stored snapshots reference but the catalog lacks.

Every imported game keeps its source snapshot, whose link lists name base
games, expansions and reimplementations that may never have been imported.
A backfill scans those snapshots, drops references that are already local,
fetches the rest once and runs the remaining ids through the noise classifier
before handing them to the orchestrator.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Any

from meeplesync.config.reconciliation import MAX_SEEDS_PER_RUN
from meeplesync.domain.model import EntityKind
from meeplesync.domain.progress import ProgressUpdate, RunComplete

from .frontier import RelationMode
from .orchestrator import ReconciliationRequest

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from meeplesync.domain.model import ExternalId, ExternalRecord, Game
    from meeplesync.domain.ports import ReconciliationUnitOfWork, SourceCatalog
    from meeplesync.domain.progress import ProgressEvent

    from .noise import NoiseClassifier
    from .orchestrator import ReconciliationOrchestrator

log = getLogger(__name__)


class UnknownFamilyError(LookupError):
    """Raised when a backfill is scoped to a family slug that does not exist."""


class ReferenceReason(StrEnum):
    BASE_GAME = "base_game"
    EXPANSION = "expansion"
    ORIGINAL = "original"
    REIMPLEMENTATION = "reimplementation"


@dataclass(slots=True, frozen=True)
class MissingReference:
    external_id: ExternalId
    reason: ReferenceReason
    referenced_by: tuple[ExternalId, ...]


@dataclass(slots=True, frozen=True)
class BackfillPlan:
    missing: tuple[MissingReference, ...]
    importable: tuple[ExternalId, ...] = ()
    filtered: dict[ExternalId, str] = field(default_factory=dict["ExternalId", str])
    unavailable: tuple[ExternalId, ...] = ()
    records: dict[ExternalId, ExternalRecord] = field(
        default_factory=dict["ExternalId", "ExternalRecord"]
    )

    def to_json(self) -> dict[str, Any]:
        return {
            "missing": [
                {
                    "external_id": reference.external_id,
                    "name": self._name(reference.external_id),
                    "reason": reference.reason.value,
                    "referenced_by": list(reference.referenced_by),
                }
                for reference in self.missing
            ],
            "importable": list(self.importable),
            "filtered": [
                {"external_id": external_id, "reason": reason}
                for external_id, reason in self.filtered.items()
            ],
            "unavailable": list(self.unavailable),
        }

    def _name(self, external_id: ExternalId) -> str | None:
        record = self.records.get(external_id)
        return record.name if record is not None else None


def _references(record: ExternalRecord) -> Iterator[tuple[ExternalId, ReferenceReason]]:
    for external_id in record.base_game_ids:
        yield external_id, ReferenceReason.BASE_GAME
    for external_id in record.reimplements_ids:
        yield external_id, ReferenceReason.ORIGINAL
    for external_id in record.expansion_ids:
        yield external_id, ReferenceReason.EXPANSION
    for external_id in record.reimplemented_by_ids:
        yield external_id, ReferenceReason.REIMPLEMENTATION


def find_missing_references(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    *,
    game_external_id: ExternalId | None = None,
    family_slug: str | None = None,
) -> tuple[MissingReference, ...]:
    """Return ids named by stored snapshots that have no local game, by id.

    The first game (in external id order) to reference an id decides its reason.
    """

    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        games: list[Game] = repositories.games.list_with_snapshots()
        if game_external_id is not None:
            games = [game for game in games if game.external_id == game_external_id]
        if family_slug is not None:
            family = repositories.families.get_by_slug(family_slug)
            if family is None:
                raise UnknownFamilyError(f"No family with slug {family_slug!r}")
            games = [game for game in games if game.family_id == family.id]

        reasons: dict[ExternalId, ReferenceReason] = {}
        referenced_by: dict[ExternalId, list[ExternalId]] = {}
        for game in games:
            try:
                record = game.snapshot_record
            except (KeyError, TypeError, ValueError) as exc:
                log.warning("Ignoring unreadable snapshot for %r: %s", game.name, exc)
                continue
            if record is None:
                continue
            for external_id, reason in _references(record):
                reasons.setdefault(external_id, reason)
                sources = referenced_by.setdefault(external_id, [])
                if record.external_id not in sources:
                    sources.append(record.external_id)

        present = repositories.games.get_many_by_external_ids(reasons)

    missing = tuple(
        MissingReference(external_id, reasons[external_id], tuple(referenced_by[external_id]))
        for external_id in sorted(reasons)
        if external_id not in present
    )
    log.info("Found %s missing references across %s games", len(missing), len(games))
    return missing


def plan_backfill(  # noqa: PLR0913
    source: SourceCatalog,
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    classifier: NoiseClassifier,
    *,
    game_external_id: ExternalId | None = None,
    family_slug: str | None = None,
    include_noise: bool = False,
    limit: int | None = None,
) -> BackfillPlan:
    """Fetch the missing references once and decide which of them to import."""

    if limit is not None and limit < 1:
        raise ValueError("limit must be a positive integer")
    missing = find_missing_references(
        unit_of_work_factory, game_external_id=game_external_id, family_slug=family_slug
    )
    if not missing:
        return BackfillPlan(missing=())

    fetched = source.fetch_many([reference.external_id for reference in missing])
    records = {
        external_id: record for external_id, record in fetched.items() if record is not None
    }
    importable: list[ExternalId] = []
    filtered: dict[ExternalId, str] = {}
    unavailable: list[ExternalId] = []
    for reference in missing:
        record = records.get(reference.external_id)
        if record is None:
            unavailable.append(reference.external_id)
            continue
        if not include_noise and record.kind is EntityKind.EXPANSION:
            verdict = classifier.classify(record.as_candidate())
            if verdict.filter:
                filtered[reference.external_id] = verdict.reason or "filtered"
                continue
        importable.append(reference.external_id)

    if limit is not None:
        importable = importable[:limit]
    log.info(
        "Backfill plan: %s importable, %s filtered, %s unavailable",
        len(importable),
        len(filtered),
        len(unavailable),
    )
    return BackfillPlan(
        missing=missing,
        importable=tuple(importable),
        filtered=filtered,
        unavailable=tuple(unavailable),
        records=records,
    )


def import_missing(
    orchestrator: ReconciliationOrchestrator,
    plan: BackfillPlan,
    *,
    chunk_size: int = MAX_SEEDS_PER_RUN,
) -> Iterator[ProgressEvent]:
    """Import the plan's ids and end with a single combined :class:`RunComplete`.

    Ids are imported without following further relations and are skipped when
    they were imported since the plan was made.
    """

    totals = RunComplete(imported=0, synced=0, failed=0, skipped=0, duration_seconds=0.0)
    for chunk in itertools.batched(plan.importable, chunk_size):
        request = ReconciliationRequest(
            seed_ids=chunk, relation_mode=RelationMode.NONE, resync=False
        )
        for event in orchestrator.run(request, prefetched=plan.records):
            if isinstance(event, ProgressUpdate):
                yield event
                continue
            totals = RunComplete(
                imported=totals.imported + event.imported,
                synced=totals.synced + event.synced,
                failed=totals.failed + event.failed,
                skipped=totals.skipped + event.skipped,
                duration_seconds=totals.duration_seconds + event.duration_seconds,
            )
    yield totals
