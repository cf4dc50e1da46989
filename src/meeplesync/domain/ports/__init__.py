"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import SourceCatalog
from .persistence import GameFamilyRepository, GameRepository, RelationRepository, Repository
from .unit_of_work import (
    ReconciliationRepositories,
    ReconciliationUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "GameFamilyRepository",
    "GameRepository",
    "ReconciliationRepositories",
    "ReconciliationUnitOfWork",
    "RelationRepository",
    "Repository",
    "RepositoryCollection",
    "SourceCatalog",
    "UnitOfWork",
]
