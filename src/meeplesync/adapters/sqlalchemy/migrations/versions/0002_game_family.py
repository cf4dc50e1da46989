"""Add game_family and link games to their series.

Revision ID: 0002_game_family
Revises: 0001_initial
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0002_game_family"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "game_family",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("external_family_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_game_family")),
        sa.UniqueConstraint("slug", name=op.f("uq_game_family_slug")),
        sa.UniqueConstraint(
            "external_family_id", name=op.f("uq_game_family_external_family_id")
        ),
    )
    # plain ADD COLUMN: rebuilding "game" in batch mode would cascade into game_relation
    op.add_column("game", sa.Column("family_id", sa.Uuid(), nullable=True))
    if op.get_context().dialect.name != "sqlite":
        op.create_foreign_key(
            op.f("fk_game_family_id_game_family"),
            "game",
            "game_family",
            ["family_id"],
            ["id"],
            ondelete="SET NULL",
        )
    op.create_index(op.f("ix_game_family_id"), "game", ["family_id"])


def downgrade() -> None:
    op.drop_index(op.f("ix_game_family_id"), table_name="game")
    if op.get_context().dialect.name != "sqlite":
        op.drop_constraint(op.f("fk_game_family_id_game_family"), "game", type_="foreignkey")
    # native DROP COLUMN needs SQLite 3.35+
    op.drop_column("game", "family_id")
    op.drop_table("game_family")
