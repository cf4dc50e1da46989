from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import IntegrityError

from meeplesync.domain.model import EntityKind, Game, GameFamily, RelationType
from tests.support.catalog import SYNCED_AT, make_expansion, make_record, store_games

if TYPE_CHECKING:
    from collections.abc import Callable

    from meeplesync.adapters.sqlalchemy import SqlAlchemyUnitOfWork

    type UowFactory = Callable[[], SqlAlchemyUnitOfWork]


def test_game_lookups(sqlite_unit_of_work: UowFactory) -> None:
    base, expansion, manual = store_games(
        sqlite_unit_of_work,
        make_record(1, "Root"),
        make_expansion(2, 1, name="Root: The Riverfolk Expansion"),
        Game(name="Homebrew Root Variant"),
    )

    with sqlite_unit_of_work() as uow:
        games = uow.repositories.games
        found = games.get_by_external_id(2)
        assert found is not None
        assert found.id == expansion.id
        assert found.kind is EntityKind.EXPANSION
        assert games.get(manual.id) is not None
        assert games.get(uuid.uuid4()) is None
        assert games.get_by_external_id(404) is None
        assert set(games.get_many_by_external_ids([1, 2, 404])) == {1, 2}
        assert games.get_many_by_external_ids([]) == {}
        assert [game.id for game in games.list_unlinked()] == [manual.id]
        assert [game.id for game in games.list_with_snapshots()] == [base.id, expansion.id]


def test_unlinked_games_are_sorted_by_name(sqlite_unit_of_work: UowFactory) -> None:
    store_games(sqlite_unit_of_work, Game(name="Wingspan"), Game(name="Azul"))

    with sqlite_unit_of_work() as uow:
        assert [game.name for game in uow.repositories.games.list_unlinked()] == [
            "Azul",
            "Wingspan",
        ]


def test_snapshot_and_sync_time_round_trip(sqlite_unit_of_work: UowFactory) -> None:
    record = make_record(1, "Root", families=("Game: Root",), year=2018, expansions=(2,))
    [game] = store_games(sqlite_unit_of_work, record)

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.games.get(game.id)
        assert stored is not None
        assert stored.snapshot_record == record
        assert stored.last_synced_at == SYNCED_AT
        assert stored.last_synced_at.tzinfo is not None


def test_naive_sync_times_are_stored_as_utc(sqlite_unit_of_work: UowFactory) -> None:
    game = Game(name="Azul", last_synced_at=datetime(2026, 3, 1, 12, 0))  # noqa: DTZ001
    store_games(sqlite_unit_of_work, game)

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.games.get(game.id)
        assert stored is not None
        assert stored.last_synced_at == datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def test_external_ids_are_unique(sqlite_unit_of_work: UowFactory) -> None:
    store_games(sqlite_unit_of_work, make_record(1))

    with pytest.raises(IntegrityError), sqlite_unit_of_work() as uow:
        uow.repositories.games.add(Game(name="Duplicate", external_id=1))
        uow.commit()


def test_relation_insert_is_ignored_on_conflict(sqlite_unit_of_work: UowFactory) -> None:
    base, expansion = store_games(sqlite_unit_of_work, make_record(1), make_expansion(2, 1))

    with sqlite_unit_of_work() as uow:
        relations = uow.repositories.relations
        assert relations.insert_if_absent(expansion.id, base.id, RelationType.EXPANSION_OF)
        assert not relations.insert_if_absent(expansion.id, base.id, RelationType.EXPANSION_OF)
        assert relations.insert_if_absent(expansion.id, base.id, RelationType.SPIN_OFF_OF)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        relations = uow.repositories.relations
        assert relations.exists(expansion.id, base.id, RelationType.EXPANSION_OF)
        assert not relations.exists(base.id, expansion.id, RelationType.EXPANSION_OF)
        listed = relations.list_for(base.id)
        assert {relation.relation_type for relation in listed} == {
            RelationType.EXPANSION_OF,
            RelationType.SPIN_OFF_OF,
        }
        assert all(relation.source_id == expansion.id for relation in listed)
        assert len(relations.list_for(expansion.id)) == 2


def test_relation_insert_flushes_pending_games(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        base = Game(name="Root", external_id=1)
        expansion = Game(name="Root: Underworld", external_id=3)
        uow.repositories.games.add(base)
        uow.repositories.games.add(expansion)
        assert uow.repositories.relations.insert_if_absent(
            expansion.id, base.id, RelationType.EXPANSION_OF
        )
        uow.commit()

    with sqlite_unit_of_work() as uow:
        assert len(uow.repositories.relations.list_for(base.id)) == 1


def test_database_rejects_self_relations(sqlite_unit_of_work: UowFactory) -> None:
    [game] = store_games(sqlite_unit_of_work, make_record(1))

    with pytest.raises(IntegrityError), sqlite_unit_of_work() as uow:
        uow.repositories.relations.insert_if_absent(game.id, game.id, RelationType.SEQUEL_TO)


def test_family_lookups(sqlite_unit_of_work: UowFactory) -> None:
    family = GameFamily(name="Gloomhaven", slug="gloomhaven", external_family_id=45)
    manual = GameFamily(name="Root", slug="root")

    with sqlite_unit_of_work() as uow:
        uow.repositories.families.add(family)
        uow.repositories.families.add(manual)
        uow.repositories.games.add(Game(name="Gloomhaven", external_id=1, family_id=family.id))
        uow.commit()

    with sqlite_unit_of_work() as uow:
        families = uow.repositories.families
        by_id = families.get_by_external_family_id(45)
        assert by_id is not None
        assert by_id.id == family.id
        by_slug = families.get_by_slug("root")
        assert by_slug is not None
        assert by_slug.external_family_id is None
        assert families.get(manual.id) is not None
        assert families.get_by_slug("pandemic") is None
        assert families.get_by_external_family_id(46) is None
        game = uow.repositories.games.get_by_external_id(1)
        assert game is not None
        assert game.family_id == family.id


def test_family_slugs_are_unique(sqlite_unit_of_work: UowFactory) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.families.add(GameFamily(name="Root", slug="root"))
        uow.commit()

    with pytest.raises(IntegrityError), sqlite_unit_of_work() as uow:
        uow.repositories.families.add(GameFamily(name="ROOT", slug="root"))
