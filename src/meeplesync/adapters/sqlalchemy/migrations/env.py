"""Alembic environment configuration for meeplesync."""

from __future__ import annotations

from logging.config import fileConfig
from pathlib import Path
from typing import TYPE_CHECKING

from alembic import context
from sqlalchemy import create_engine, pool

from meeplesync.adapters.sqlalchemy.mappings import mapper_registry, start_mappers
from meeplesync.common.storage import get_database_uri

if TYPE_CHECKING:
    from sqlalchemy import Connection

config = context.config

if config.config_file_name is not None:
    config_path = Path(config.config_file_name)
    if config_path.suffix == ".ini" and config_path.exists():
        fileConfig(config.config_file_name)

start_mappers()

target_metadata = mapper_registry.metadata


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or get_database_uri()


def _migrate(connection: Connection | None = None) -> None:
    # SQLite only alters constraints through batch table rebuilds
    if connection is None:
        context.configure(
            url=_database_url(),
            target_metadata=target_metadata,
            literal_binds=True,
            render_as_batch=True,
            compare_type=True,
        )
    else:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,
            compare_type=True,
        )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live database.

    ``upgrade_head`` hands its engine's connection over through
    ``config.attributes["connection"]``; the standalone ``alembic`` command
    builds a throwaway engine from the configured URL instead.
    """

    existing_connection = config.attributes.get("connection")
    if existing_connection is not None:
        _migrate(existing_connection)
        return

    engine = create_engine(_database_url(), poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _migrate(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    _migrate()
else:
    run_migrations_online()
