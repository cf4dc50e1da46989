from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import pytest

from meeplesync.domain.model import EntityKind, Game, RelationType, UpsertOutcome
from meeplesync.domain.reconciliation import (
    LinkReport,
    NoiseClassifier,
    RelationLinker,
    RelationWriter,
    SelfRelationError,
    UnknownGameError,
    add_relation,
    relink_from_snapshots,
)
from tests.support.catalog import edges, make_expansion, make_record, store_games

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from meeplesync.adapters.sqlalchemy import SqlAlchemyUnitOfWork
    from meeplesync.domain.model import ExternalId, ExternalRecord

    type UowFactory = Callable[[], SqlAlchemyUnitOfWork]


class _MemoryRelations:
    def __init__(self) -> None:
        self.rows: set[tuple[uuid.UUID, uuid.UUID, RelationType]] = set()

    def insert_if_absent(
        self, source_id: uuid.UUID, target_id: uuid.UUID, relation_type: RelationType
    ) -> bool:
        key = (source_id, target_id, relation_type)
        if key in self.rows:
            return False
        self.rows.add(key)
        return True


def _link(
    factory: UowFactory,
    record: ExternalRecord,
    *,
    noise_ids: Iterable[ExternalId] = (),
    classifier: NoiseClassifier | None = None,
) -> LinkReport:
    with factory() as uow:
        game = uow.repositories.games.get_by_external_id(record.external_id)
        assert game is not None
        linker = RelationLinker(
            uow.repositories.games,
            RelationWriter(uow.repositories.relations),
            noise_ids=noise_ids,
            classifier=classifier,
        )
        report = linker.link(game, record)
        uow.commit()
    return report


def test_writer_is_idempotent() -> None:
    relations = _MemoryRelations()
    writer = RelationWriter(relations)  # pyright: ignore[reportArgumentType]
    source, target = uuid.uuid4(), uuid.uuid4()

    first = writer.upsert_relation(source, target, RelationType.EXPANSION_OF)
    second = writer.upsert_relation(source, target, RelationType.EXPANSION_OF)
    other_type = writer.upsert_relation(source, target, RelationType.SEQUEL_TO)

    assert first is UpsertOutcome.CREATED
    assert second is UpsertOutcome.ALREADY_EXISTED
    assert other_type is UpsertOutcome.CREATED
    assert len(relations.rows) == 2


def test_writer_rejects_self_relations() -> None:
    relations = _MemoryRelations()
    writer = RelationWriter(relations)  # pyright: ignore[reportArgumentType]
    game_id = uuid.uuid4()

    with pytest.raises(SelfRelationError):
        writer.upsert_relation(game_id, game_id, RelationType.SPIN_OFF_OF)
    assert relations.rows == set()


def test_linker_connects_existing_neighbours(sqlite_unit_of_work: UowFactory) -> None:
    base = make_record(1, year=2015, expansions=(2, 3, 99), reimplemented_by=(4,))
    store_games(
        sqlite_unit_of_work,
        base,
        make_expansion(2, 1),
        make_expansion(3, 1, engagement=5),
        make_record(4, year=2020, reimplements=(1,)),
    )

    report = _link(sqlite_unit_of_work, base, noise_ids=[3])

    assert (report.created, report.already_existed, report.skipped) == (2, 0, 1)
    assert edges(sqlite_unit_of_work) == {
        (2, 1, "expansion_of"),
        (4, 1, "reimplementation_of"),
    }


def test_linker_skips_noise_on_reimplementation_links(sqlite_unit_of_work: UowFactory) -> None:
    original = make_record(1, reimplemented_by=(20,))
    store_games(
        sqlite_unit_of_work,
        original,
        make_record(20, kind=EntityKind.EXPANSION, engagement=3, reimplements=(1,)),
    )

    report = _link(sqlite_unit_of_work, original, classifier=NoiseClassifier())

    assert report == LinkReport(skipped=1)
    assert edges(sqlite_unit_of_work) == set()


def test_linker_reports_existing_edges(sqlite_unit_of_work: UowFactory) -> None:
    expansion = make_expansion(2, 1)
    store_games(sqlite_unit_of_work, make_record(1, expansions=(2,)), expansion)

    first = _link(sqlite_unit_of_work, expansion)
    second = _link(sqlite_unit_of_work, expansion)

    assert first.created == 1
    assert second.created == 0
    assert second.already_existed == 1
    assert edges(sqlite_unit_of_work) == {(2, 1, "expansion_of")}


def test_linker_skips_reimplementations_published_earlier(
    sqlite_unit_of_work: UowFactory,
) -> None:
    original = make_record(1, year=2015, reimplemented_by=(4,))
    store_games(sqlite_unit_of_work, original, make_record(4, year=2010, reimplements=(1,)))

    report = _link(sqlite_unit_of_work, original)

    assert report.skipped == 1
    assert edges(sqlite_unit_of_work) == set()


def test_linker_never_links_a_game_to_itself(sqlite_unit_of_work: UowFactory) -> None:
    odd = make_record(7, base=(7,), reimplements=(7,))
    store_games(sqlite_unit_of_work, odd)

    report = _link(sqlite_unit_of_work, odd)

    assert report.skipped == 2
    assert edges(sqlite_unit_of_work) == set()


def test_linker_uses_classifier_on_stored_snapshots(sqlite_unit_of_work: UowFactory) -> None:
    base = make_record(1, expansions=(2, 3))
    store_games(
        sqlite_unit_of_work,
        base,
        make_expansion(2, 1),
        make_expansion(3, 1, name="Game 1: Promo Card"),
    )

    report = _link(sqlite_unit_of_work, base, classifier=NoiseClassifier())

    assert report.skipped == 1
    assert edges(sqlite_unit_of_work) == {(2, 1, "expansion_of")}


def test_relink_rebuilds_edges_from_snapshots(sqlite_unit_of_work: UowFactory) -> None:
    store_games(
        sqlite_unit_of_work,
        make_record(1, year=2015, expansions=(2,), reimplemented_by=(4,)),
        make_expansion(2, 1),
        make_record(4, year=2020, reimplements=(1,)),
        Game(name="Hand-entered game"),
    )

    first = relink_from_snapshots(sqlite_unit_of_work)
    second = relink_from_snapshots(sqlite_unit_of_work)

    assert first.created == 2
    assert second.created == 0
    assert second.already_existed == first.created + first.already_existed
    assert edges(sqlite_unit_of_work) == {
        (2, 1, "expansion_of"),
        (4, 1, "reimplementation_of"),
    }


def test_relink_leaves_noise_unlinked(sqlite_unit_of_work: UowFactory) -> None:
    store_games(
        sqlite_unit_of_work,
        make_record(1, expansions=(2, 3)),
        make_expansion(2, 1),
        make_expansion(3, 1, engagement=4),
    )

    report = relink_from_snapshots(sqlite_unit_of_work, classifier=NoiseClassifier())

    assert edges(sqlite_unit_of_work) == {(2, 1, "expansion_of")}
    assert report.skipped == 2


def test_relink_skips_unreadable_snapshots(sqlite_unit_of_work: UowFactory) -> None:
    broken = Game(name="Broken", kind=EntityKind.EXPANSION, external_id=5)
    broken.source_snapshot = {"name": "Broken"}
    store_games(sqlite_unit_of_work, broken)

    report = relink_from_snapshots(sqlite_unit_of_work)

    assert report == LinkReport(skipped=1)


def test_add_relation_between_imported_games(sqlite_unit_of_work: UowFactory) -> None:
    store_games(sqlite_unit_of_work, make_record(1), make_record(2))

    first = add_relation(
        sqlite_unit_of_work,
        source_external_id=2,
        target_external_id=1,
        relation_type=RelationType.SEQUEL_TO,
    )
    second = add_relation(
        sqlite_unit_of_work,
        source_external_id=2,
        target_external_id=1,
        relation_type=RelationType.SEQUEL_TO,
    )

    assert first is UpsertOutcome.CREATED
    assert second is UpsertOutcome.ALREADY_EXISTED
    assert edges(sqlite_unit_of_work) == {(2, 1, "sequel_to")}


def test_add_relation_requires_both_games(sqlite_unit_of_work: UowFactory) -> None:
    store_games(sqlite_unit_of_work, make_record(1))

    with pytest.raises(UnknownGameError, match="42"):
        add_relation(
            sqlite_unit_of_work,
            source_external_id=42,
            target_external_id=1,
            relation_type=RelationType.SPIN_OFF_OF,
        )


def test_add_relation_rejects_self_edges(sqlite_unit_of_work: UowFactory) -> None:
    store_games(sqlite_unit_of_work, make_record(1))

    with pytest.raises(SelfRelationError):
        add_relation(
            sqlite_unit_of_work,
            source_external_id=1,
            target_external_id=1,
            relation_type=RelationType.STANDALONE_IN_SERIES,
        )
