"""Group imported games into series taken from their catalog families."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from meeplesync.domain.model import GameFamily

from .normalize import normalize_name

if TYPE_CHECKING:
    from meeplesync.domain.model import ExternalRecord, Game
    from meeplesync.domain.ports import GameFamilyRepository

log = getLogger(__name__)


def family_slug(name: str) -> str:
    """
    >>> family_slug("Gloomhaven: Jaws of the Lion")
    'gloomhaven-jaws-of-the-lion'
    """

    return normalize_name(name).replace(" ", "-")


class FamilyLinker:
    """Attach games to the local family named by their first series family.

    A family is found by its external id first, then by slug, so a family
    created by hand is adopted instead of duplicated.
    """

    def __init__(self, repository: GameFamilyRepository) -> None:
        self._repository = repository

    def link(self, game: Game, record: ExternalRecord) -> GameFamily | None:
        ref = record.series_family
        if ref is None or ref.series_name is None:
            return None
        slug = family_slug(ref.series_name)
        if not slug:
            return None

        family = self._repository.get_by_external_family_id(ref.external_id)
        if family is None:
            family = self._repository.get_by_slug(slug)
            if family is not None and family.external_family_id is None:
                log.info("Adopting family %r for external family %s", family.name, ref.external_id)
                family.external_family_id = ref.external_id
        if family is None:
            family = GameFamily(
                name=ref.series_name, slug=slug, external_family_id=ref.external_id
            )
            self._repository.add(family)
            log.info("Created family %r", family.name)

        game.family_id = family.id
        return family
