"""Idempotent persistence of directed relations between local games."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from meeplesync.domain.model import EntityKind, RelationType, SelfRelationError, UpsertOutcome

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from uuid import UUID

    from meeplesync.domain.model import ExternalId, ExternalRecord, Game
    from meeplesync.domain.ports import (
        GameRepository,
        ReconciliationUnitOfWork,
        RelationRepository,
    )

    from .noise import NoiseClassifier

log = getLogger(__name__)


class UnknownGameError(LookupError):
    """Raised when a relation refers to a game that is not in the catalog."""


class RelationWriter:
    """Write relation edges as insert-or-ignore on the unique edge key."""

    def __init__(self, repository: RelationRepository) -> None:
        self._repository = repository

    def upsert_relation(
        self, source_id: UUID, target_id: UUID, relation_type: RelationType
    ) -> UpsertOutcome:
        if source_id == target_id:
            raise SelfRelationError(f"Refusing {relation_type} edge from {source_id} to itself")
        if self._repository.insert_if_absent(source_id, target_id, relation_type):
            log.debug("Created %s edge %s -> %s", relation_type, source_id, target_id)
            return UpsertOutcome.CREATED
        log.info("Relation %s %s -> %s already existed", relation_type, source_id, target_id)
        return UpsertOutcome.ALREADY_EXISTED


@dataclass(slots=True)
class LinkReport:
    created: int = 0
    already_existed: int = 0
    skipped: int = 0

    def record(self, outcome: UpsertOutcome) -> None:
        if outcome is UpsertOutcome.CREATED:
            self.created += 1
        else:
            self.already_existed += 1

    def merge(self, other: LinkReport) -> None:
        self.created += other.created
        self.already_existed += other.already_existed
        self.skipped += other.skipped


class RelationLinker:
    """Attach a game to the neighbours named by its record that already exist locally.

    No edge is written to or from a game known to be noise, whichever link
    names it. Reimplementation edges whose derived game predates the original
    are skipped as bad data.
    """

    def __init__(
        self,
        games: GameRepository,
        writer: RelationWriter,
        *,
        noise_ids: Iterable[ExternalId] = (),
        classifier: NoiseClassifier | None = None,
    ) -> None:
        self._games = games
        self._writer = writer
        self._noise_ids = frozenset(noise_ids)
        self._classifier = classifier

    def link(self, game: Game, record: ExternalRecord) -> LinkReport:
        report = LinkReport()
        linked_ids = (
            *record.base_game_ids,
            *record.expansion_ids,
            *record.reimplements_ids,
            *record.reimplemented_by_ids,
        )
        neighbours = self._games.get_many_by_external_ids(linked_ids)

        def write(source: Game, target: Game, relation_type: RelationType) -> None:
            if source.id == target.id or self._is_noise(source) or self._is_noise(target):
                report.skipped += 1
                return
            report.record(self._writer.upsert_relation(source.id, target.id, relation_type))

        for base_id in record.base_game_ids:
            if (base := neighbours.get(base_id)) is not None:
                write(game, base, RelationType.EXPANSION_OF)

        for expansion_id in record.expansion_ids:
            if (expansion := neighbours.get(expansion_id)) is not None:
                write(expansion, game, RelationType.EXPANSION_OF)

        for original_id in record.reimplements_ids:
            if (original := neighbours.get(original_id)) is not None:
                self._write_reimplementation(game, original, write, report)

        for derived_id in record.reimplemented_by_ids:
            if (derived := neighbours.get(derived_id)) is not None:
                self._write_reimplementation(derived, game, write, report)

        return report

    def _write_reimplementation(
        self,
        derived: Game,
        original: Game,
        write: Callable[[Game, Game, RelationType], None],
        report: LinkReport,
    ) -> None:
        if (
            derived.year_published is not None
            and original.year_published is not None
            and derived.year_published < original.year_published
        ):
            log.warning(
                "Skipping reimplementation %r (%s) of %r (%s): published earlier",
                derived.name,
                derived.year_published,
                original.name,
                original.year_published,
            )
            report.skipped += 1
            return
        write(derived, original, RelationType.REIMPLEMENTATION_OF)

    def _is_noise(self, game: Game) -> bool:
        if game.external_id in self._noise_ids:
            return True
        if self._classifier is None or game.kind is not EntityKind.EXPANSION:
            return False
        try:
            snapshot = game.snapshot_record
        except (KeyError, TypeError, ValueError):
            return False
        if snapshot is None:
            return False
        return self._classifier.classify(snapshot.as_candidate()).filter


def relink_from_snapshots(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    *,
    classifier: NoiseClassifier | None = None,
) -> LinkReport:
    """Re-derive every edge from the source snapshots stored on local games.

    Does not touch the network. With a ``classifier``, games whose own snapshot
    is noise are left unlinked.
    """

    report = LinkReport()
    with unit_of_work_factory() as uow:
        games = uow.repositories.games
        linker = RelationLinker(
            games, RelationWriter(uow.repositories.relations), classifier=classifier
        )
        for game in games.list_with_snapshots():
            try:
                record = game.snapshot_record
            except (KeyError, TypeError, ValueError) as exc:
                log.warning("Ignoring unreadable snapshot for %r: %s", game.name, exc)
                report.skipped += 1
                continue
            if record is None:
                continue
            if classifier is not None and classifier.classify(record.as_candidate()).filter:
                report.skipped += 1
                continue
            report.merge(linker.link(game, record))
        uow.commit()
    log.info(
        "Relinked relations: created=%s already_existed=%s skipped=%s",
        report.created,
        report.already_existed,
        report.skipped,
    )
    return report


def add_relation(
    unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
    *,
    source_external_id: ExternalId,
    target_external_id: ExternalId,
    relation_type: RelationType,
) -> UpsertOutcome:
    """Record an operator-supplied edge between two imported games."""

    with unit_of_work_factory() as uow:
        games = uow.repositories.games
        source = games.get_by_external_id(source_external_id)
        if source is None:
            raise UnknownGameError(f"No local game for external id {source_external_id}")
        target = games.get_by_external_id(target_external_id)
        if target is None:
            raise UnknownGameError(f"No local game for external id {target_external_id}")
        outcome = RelationWriter(uow.repositories.relations).upsert_relation(
            source.id, target.id, relation_type
        )
        uow.commit()
    return outcome
