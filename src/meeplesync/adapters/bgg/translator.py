"""Translate validated BGG items into external catalog records."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from meeplesync.domain.model import EntityKind, ExternalRecord, FamilyRef

from .schema import BGG_ITEM_ADAPTER, BggBoardGame, BggExpansion

if TYPE_CHECKING:
    from collections.abc import Mapping

    from meeplesync.domain.model import ExternalId

    from .schema import BggLink

log = getLogger(__name__)

LINK_EXPANSION = "boardgameexpansion"
LINK_IMPLEMENTATION = "boardgameimplementation"
LINK_FAMILY = "boardgamefamily"

_KIND_BY_ITEM: dict[type[BggBoardGame | BggExpansion], EntityKind] = {
    BggBoardGame: EntityKind.BASE,
    BggExpansion: EntityKind.EXPANSION,
}


def translate_item(item: BggBoardGame | BggExpansion) -> ExternalRecord:
    expansion_links = item.links_of(LINK_EXPANSION)
    family_links = [link for link in item.links_of(LINK_FAMILY) if link.value]
    implementation_links = item.links_of(LINK_IMPLEMENTATION)
    return ExternalRecord(
        external_id=item.id,
        name=item.primary_name or "",
        kind=_KIND_BY_ITEM[type(item)],
        engagement_count=item.usersrated,
        family_tags=frozenset(link.value for link in family_links),
        families=tuple(FamilyRef(link.id, link.value) for link in family_links),
        # BGG reports an unknown year as 0
        year_published=item.yearpublished or None,
        base_game_ids=_ids(expansion_links, inbound=True),
        expansion_ids=_ids(expansion_links, inbound=False),
        reimplements_ids=_ids(implementation_links, inbound=True),
        reimplemented_by_ids=_ids(implementation_links, inbound=False),
    )


def translate_raw_item(raw: Mapping[str, Any]) -> ExternalRecord | None:
    """Validate and translate one flattened item; ``None`` when it is unusable."""

    try:
        item = BGG_ITEM_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        log.warning(
            "Rejecting BGG item id=%s type=%s: %s",
            raw.get("id"),
            raw.get("type"),
            exc.errors(include_url=False),
        )
        return None
    return translate_item(item)


def _ids(links: list[BggLink], *, inbound: bool) -> tuple[ExternalId, ...]:
    return tuple(dict.fromkeys(link.id for link in links if link.inbound is inbound))
