"""Core catalog entities and source records for board-game reconciliation."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

type ExternalId = int
"""Positive identifier of a record in the external catalog."""

SERIES_FAMILY_PREFIXES: Final[tuple[str, ...]] = ("Game:", "Series:")


class EntityKind(StrEnum):
    BASE = "base"
    EXPANSION = "expansion"


class RelationType(StrEnum):
    EXPANSION_OF = "expansion_of"
    REIMPLEMENTATION_OF = "reimplementation_of"
    SEQUEL_TO = "sequel_to"
    SPIN_OFF_OF = "spin_off_of"
    STANDALONE_IN_SERIES = "standalone_in_series"


class UpsertOutcome(StrEnum):
    CREATED = "created"
    ALREADY_EXISTED = "already_existed"


class SelfRelationError(ValueError):
    """Raised when an edge would connect a game to itself."""


def is_external_id(value: object) -> bool:
    """Return whether ``value`` is a usable external identifier."""

    return isinstance(value, int) and not isinstance(value, bool) and value > 0


@dataclass(slots=True, frozen=True)
class CandidateEntity:
    """A related record as seen by the noise classifier. Never persisted."""

    external_id: ExternalId
    name: str
    kind: EntityKind
    engagement_count: int
    family_tags: frozenset[str] = frozenset()


@dataclass(slots=True, frozen=True)
class FamilyRef:
    """A family the external catalog files a record under."""

    external_id: ExternalId
    name: str

    @property
    def series_name(self) -> str | None:
        """The cleaned series name, or ``None`` for theme/mechanism/etc. families."""

        for prefix in SERIES_FAMILY_PREFIXES:
            if self.name.startswith(prefix):
                return self.name.removeprefix(prefix).strip() or None
        return None


@dataclass(slots=True, frozen=True)
class ExternalRecord:
    """A validated record from the external catalog.

    Link tuples are split by direction: ``base_game_ids`` and ``reimplements_ids``
    point upstream, ``expansion_ids`` and ``reimplemented_by_ids`` downstream.
    """

    external_id: ExternalId
    name: str
    kind: EntityKind
    engagement_count: int = 0
    family_tags: frozenset[str] = frozenset()
    year_published: int | None = None
    base_game_ids: tuple[ExternalId, ...] = ()
    expansion_ids: tuple[ExternalId, ...] = ()
    reimplements_ids: tuple[ExternalId, ...] = ()
    reimplemented_by_ids: tuple[ExternalId, ...] = ()
    families: tuple[FamilyRef, ...] = ()

    def as_candidate(self) -> CandidateEntity:
        return CandidateEntity(
            external_id=self.external_id,
            name=self.name,
            kind=self.kind,
            engagement_count=self.engagement_count,
            family_tags=self.family_tags,
        )

    @property
    def base_game_id(self) -> ExternalId | None:
        return self.base_game_ids[0] if self.base_game_ids else None

    @property
    def series_family(self) -> FamilyRef | None:
        """First family, in catalog order, that names a game series."""

        for family in self.families:
            if family.series_name is not None:
                return family
        return None

    @property
    def series_name(self) -> str | None:
        """Series name taken from a ``Game:``/``Series:`` family, if any."""

        if (family := self.series_family) is not None:
            return family.series_name
        for tag in sorted(self.family_tags):
            name = FamilyRef(self.external_id, tag).series_name
            if name:
                return name
        return None

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "external_id": self.external_id,
            "name": self.name,
            "kind": self.kind.value,
            "engagement_count": self.engagement_count,
            "family_tags": sorted(self.family_tags),
            "families": [
                {"id": family.external_id, "name": family.name} for family in self.families
            ],
            "year_published": self.year_published,
            "base_game_ids": list(self.base_game_ids),
            "expansion_ids": list(self.expansion_ids),
            "reimplements_ids": list(self.reimplements_ids),
            "reimplemented_by_ids": list(self.reimplemented_by_ids),
        }

    @classmethod
    def from_snapshot(cls, snapshot: Mapping[str, Any]) -> ExternalRecord:
        """Rebuild a record stored by :meth:`to_snapshot`.

        Raises ``KeyError``/``ValueError`` when the snapshot is incomplete.
        """

        external_id = snapshot["external_id"]
        if not is_external_id(external_id):
            raise ValueError(f"Invalid external id in snapshot: {external_id!r}")
        return cls(
            external_id=external_id,
            name=str(snapshot["name"]),
            kind=EntityKind(snapshot["kind"]),
            engagement_count=int(snapshot.get("engagement_count") or 0),
            family_tags=frozenset(snapshot.get("family_tags") or ()),
            year_published=snapshot.get("year_published"),
            base_game_ids=_ids(snapshot, "base_game_ids"),
            expansion_ids=_ids(snapshot, "expansion_ids"),
            reimplements_ids=_ids(snapshot, "reimplements_ids"),
            reimplemented_by_ids=_ids(snapshot, "reimplemented_by_ids"),
            families=tuple(
                FamilyRef(entry["id"], str(entry["name"]))
                for entry in snapshot.get("families") or ()
                if isinstance(entry, dict) and is_external_id(entry.get("id")) and entry.get("name")
            ),
        )


def _ids(snapshot: Mapping[str, Any], key: str) -> tuple[ExternalId, ...]:
    return tuple(value for value in snapshot.get(key) or () if is_external_id(value))


@dataclass(eq=False)
class GameFamily:
    """A game series grouping local games, e.g. every Gloomhaven title."""

    name: str
    slug: str
    external_family_id: ExternalId | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass(eq=False)
class Game:
    """A game in the local catalog, optionally linked to an external record."""

    name: str
    kind: EntityKind = EntityKind.BASE
    external_id: ExternalId | None = None
    engagement_count: int | None = None
    year_published: int | None = None
    source_snapshot: dict[str, Any] | None = None
    last_synced_at: datetime | None = None
    family_id: uuid.UUID | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def apply_record(self, record: ExternalRecord, *, synced_at: datetime) -> None:
        """Link this game to ``record`` and refresh the source-derived fields."""

        self.external_id = record.external_id
        self.name = record.name
        self.kind = record.kind
        self.engagement_count = record.engagement_count
        self.year_published = record.year_published
        self.source_snapshot = record.to_snapshot()
        self.last_synced_at = synced_at

    @property
    def snapshot_record(self) -> ExternalRecord | None:
        if self.source_snapshot is None:
            return None
        return ExternalRecord.from_snapshot(self.source_snapshot)

    @classmethod
    def from_record(cls, record: ExternalRecord, *, synced_at: datetime) -> Game:
        game = cls(name=record.name, kind=record.kind)
        game.apply_record(record, synced_at=synced_at)
        return game


@dataclass(eq=False)
class GameRelation:
    """Directed edge; ``source_id`` is the dependent or derivative game."""

    source_id: uuid.UUID
    target_id: uuid.UUID
    relation_type: RelationType

    def __post_init__(self) -> None:
        if self.source_id == self.target_id:
            raise SelfRelationError(
                f"Refusing {self.relation_type} edge from {self.source_id} to itself"
            )
