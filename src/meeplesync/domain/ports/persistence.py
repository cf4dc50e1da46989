"""Ports for persisting catalog games and their relations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from meeplesync.domain.model import Game, GameFamily, GameRelation

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from meeplesync.domain.model import ExternalId, RelationType


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class GameRepository(Repository[Game], Protocol):
    """Persistence contract for local catalog games."""

    def get(self, game_id: UUID) -> Game | None: ...

    def get_by_external_id(self, external_id: ExternalId) -> Game | None: ...

    def get_many_by_external_ids(
        self, external_ids: Iterable[ExternalId]
    ) -> dict[ExternalId, Game]: ...

    def list_unlinked(self) -> list[Game]: ...

    def list_with_snapshots(self) -> list[Game]: ...


@runtime_checkable
class RelationRepository(Protocol):
    """Persistence contract for directed game relations."""

    def insert_if_absent(
        self, source_id: UUID, target_id: UUID, relation_type: RelationType
    ) -> bool:
        """Insert the edge unless it exists; return whether a row was written."""
        ...

    def exists(self, source_id: UUID, target_id: UUID, relation_type: RelationType) -> bool: ...

    def list_for(self, game_id: UUID) -> list[GameRelation]: ...


@runtime_checkable
class GameFamilyRepository(Repository[GameFamily], Protocol):
    """Persistence contract for game series."""

    def get(self, family_id: UUID) -> GameFamily | None: ...

    def get_by_external_family_id(self, external_family_id: ExternalId) -> GameFamily | None: ...

    def get_by_slug(self, slug: str) -> GameFamily | None: ...
