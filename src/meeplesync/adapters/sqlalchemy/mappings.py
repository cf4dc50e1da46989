"""SQLAlchemy mapping metadata for the meeplesync domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers

from meeplesync.domain.model import EntityKind, Game, GameFamily, GameRelation, RelationType

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _enum(enum_cls: type[EntityKind] | type[RelationType], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        validate_strings=True,
        values_callable=lambda members: [member.value for member in members],
    )


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

game_family_table = Table(
    "game_family",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("name", String, nullable=False),
    Column("slug", String, nullable=False, unique=True),
    Column("external_family_id", Integer, nullable=True, unique=True),
)

game_table = Table(
    "game",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("name", String, nullable=False),
    Column("external_id", Integer, nullable=True, unique=True),
    Column("kind", _enum(EntityKind, "entity_kind"), nullable=False),
    Column("engagement_count", Integer, nullable=True),
    Column("year_published", Integer, nullable=True),
    Column("source_snapshot", JSON(none_as_null=True), nullable=True),
    Column("last_synced_at", UTCDateTime(), nullable=True),
    Column(
        "family_id",
        UUIDColumnType,
        ForeignKey("game_family.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    ),
)

game_relation_table = Table(
    "game_relation",
    mapper_registry.metadata,
    Column(
        "source_id",
        UUIDColumnType,
        ForeignKey("game.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "target_id",
        UUIDColumnType,
        ForeignKey("game.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("relation_type", _enum(RelationType, "relation_type"), primary_key=True),
    UniqueConstraint("source_id", "target_id", "relation_type"),
    CheckConstraint("source_id != target_id", name="no_self_relation"),
    Index("ix_game_relation_target_id", "target_id"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(GameFamily, game_family_table)
    mapper_registry.map_imperatively(Game, game_table)
    mapper_registry.map_imperatively(GameRelation, game_relation_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
