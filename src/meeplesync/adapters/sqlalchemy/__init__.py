"""SQLAlchemy adapter package for meeplesync."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyGameFamilyRepository,
    SqlAlchemyGameRepository,
    SqlAlchemyRelationRepository,
)
from .unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup

__all__ = [
    "SqlAlchemyGameFamilyRepository",
    "SqlAlchemyGameRepository",
    "SqlAlchemyRelationRepository",
    "SqlAlchemyUnitOfWork",
    "create_all_tables",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
