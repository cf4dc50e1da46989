"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite

from meeplesync.adapters.sqlalchemy.mappings import (
    game_family_table,
    game_relation_table,
    game_table,
)
from meeplesync.domain.model import Game, GameFamily, GameRelation

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from sqlalchemy import Insert
    from sqlalchemy.orm import Session

    from meeplesync.domain.model import ExternalId, RelationType


class SqlAlchemyGameRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Game) -> None:
        self.session.add(entity)

    def get(self, game_id: UUID) -> Game | None:
        return self.session.get(Game, game_id)

    def get_by_external_id(self, external_id: ExternalId) -> Game | None:
        stmt = select(Game).where(game_table.c.external_id == external_id).limit(1)
        return self.session.execute(stmt).scalar_one_or_none()

    def get_many_by_external_ids(
        self, external_ids: Iterable[ExternalId]
    ) -> dict[ExternalId, Game]:
        ids = set(external_ids)
        if not ids:
            return {}
        stmt = select(Game).where(game_table.c.external_id.in_(ids))
        return {
            game.external_id: game
            for game in self.session.execute(stmt).scalars()
            if game.external_id is not None
        }

    def list_unlinked(self) -> list[Game]:
        stmt = select(Game).where(game_table.c.external_id.is_(None)).order_by(game_table.c.name)
        return list(self.session.execute(stmt).scalars())

    def list_with_snapshots(self) -> list[Game]:
        stmt = (
            select(Game)
            .where(game_table.c.source_snapshot.is_not(None))
            .order_by(game_table.c.external_id)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyRelationRepository:
    """Relation edges written with ``INSERT ... ON CONFLICT DO NOTHING``."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def insert_if_absent(
        self, source_id: UUID, target_id: UUID, relation_type: RelationType
    ) -> bool:
        values = {
            "source_id": source_id,
            "target_id": target_id,
            "relation_type": relation_type,
        }
        # new games may still be pending in the session
        self.session.flush()
        result = self.session.execute(self._insert_ignoring_conflicts(values))
        return bool(result.rowcount)  # pyright: ignore[reportAttributeAccessIssue]

    def exists(self, source_id: UUID, target_id: UUID, relation_type: RelationType) -> bool:
        stmt = (
            select(game_relation_table.c.source_id)
            .where(game_relation_table.c.source_id == source_id)
            .where(game_relation_table.c.target_id == target_id)
            .where(game_relation_table.c.relation_type == relation_type)
            .limit(1)
        )
        return self.session.execute(stmt).first() is not None

    def list_for(self, game_id: UUID) -> list[GameRelation]:
        stmt = select(GameRelation).where(
            (game_relation_table.c.source_id == game_id)
            | (game_relation_table.c.target_id == game_id)
        )
        return list(self.session.execute(stmt).scalars())

    def _insert_ignoring_conflicts(self, values: dict[str, object]) -> Insert:
        dialect = self.session.get_bind().dialect.name
        if dialect == "sqlite":
            return sqlite.insert(game_relation_table).values(values).on_conflict_do_nothing()
        if dialect == "postgresql":
            return postgresql.insert(game_relation_table).values(values).on_conflict_do_nothing()
        raise NotImplementedError(f"Relation upsert is not supported on {dialect}")


class SqlAlchemyGameFamilyRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: GameFamily) -> None:
        self.session.add(entity)
        # games reference families without an ORM relationship to order the inserts
        self.session.flush()

    def get(self, family_id: UUID) -> GameFamily | None:
        return self.session.get(GameFamily, family_id)

    def get_by_external_family_id(self, external_family_id: ExternalId) -> GameFamily | None:
        stmt = (
            select(GameFamily)
            .where(game_family_table.c.external_family_id == external_family_id)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_slug(self, slug: str) -> GameFamily | None:
        stmt = select(GameFamily).where(game_family_table.c.slug == slug).limit(1)
        return self.session.execute(stmt).scalar_one_or_none()
