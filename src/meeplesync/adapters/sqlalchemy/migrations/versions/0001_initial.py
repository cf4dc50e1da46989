"""Create game and game_relation tables.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

_ENTITY_KINDS = ("base", "expansion")
_RELATION_TYPES = (
    "expansion_of",
    "reimplementation_of",
    "sequel_to",
    "spin_off_of",
    "standalone_in_series",
)


def upgrade() -> None:
    op.create_table(
        "game",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("external_id", sa.Integer(), nullable=True),
        sa.Column(
            "kind",
            sa.Enum(*_ENTITY_KINDS, name="entity_kind", native_enum=False),
            nullable=False,
        ),
        sa.Column("engagement_count", sa.Integer(), nullable=True),
        sa.Column("year_published", sa.Integer(), nullable=True),
        sa.Column("source_snapshot", sa.JSON(), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_game")),
        sa.UniqueConstraint("external_id", name=op.f("uq_game_external_id")),
    )
    op.create_table(
        "game_relation",
        sa.Column("source_id", sa.Uuid(), nullable=False),
        sa.Column("target_id", sa.Uuid(), nullable=False),
        sa.Column(
            "relation_type",
            sa.Enum(*_RELATION_TYPES, name="relation_type", native_enum=False),
            nullable=False,
        ),
        sa.CheckConstraint(
            "source_id != target_id", name=op.f("ck_game_relation_no_self_relation")
        ),
        sa.ForeignKeyConstraint(
            ["source_id"],
            ["game.id"],
            name=op.f("fk_game_relation_source_id_game"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["target_id"],
            ["game.id"],
            name=op.f("fk_game_relation_target_id_game"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint(
            "source_id", "target_id", "relation_type", name=op.f("pk_game_relation")
        ),
        sa.UniqueConstraint(
            "source_id",
            "target_id",
            "relation_type",
            name=op.f("uq_game_relation_source_id"),
        ),
    )
    op.create_index("ix_game_relation_target_id", "game_relation", ["target_id"])


def downgrade() -> None:
    op.drop_index("ix_game_relation_target_id", table_name="game_relation")
    op.drop_table("game_relation")
    op.drop_table("game")
