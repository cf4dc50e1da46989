"""Breadth-first discovery of related catalog records.

The collector walks the external catalog level by level starting from a set of
seed ids. Every id is visited at most once per run, exclusions are checked
before anything is enqueued, and every expansion-kind record is run through
the noise classifier before it may join the next level, whichever link led to
it. Filtered and unfetchable ids stay visited so that a second path to
them is ignored as well.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from meeplesync.domain.model import EntityKind, ExternalRecord

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from meeplesync.domain.model import ExternalId
    from meeplesync.domain.ports import SourceCatalog

    from .noise import NoiseClassifier

log = getLogger(__name__)


class RelationMode(StrEnum):
    NONE = "none"
    UPSTREAM = "upstream"
    ALL = "all"


class FrontierState(StrEnum):
    SEEDED = "seeded"
    EXPANDING = "expanding"
    EXHAUSTED = "exhausted"


@dataclass(slots=True)
class Frontier:
    """Mutable traversal state for one collection run."""

    excluded: frozenset[ExternalId]
    visited: set[ExternalId] = field(default_factory=set["ExternalId"])
    pending: deque[ExternalId] = field(default_factory=deque["ExternalId"])
    depth: int = 0
    state: FrontierState = FrontierState.SEEDED
    filtered: dict[ExternalId, str] = field(default_factory=dict["ExternalId", str])
    discovered: list[ExternalId] = field(default_factory=list["ExternalId"])

    @classmethod
    def seeded(cls, seeds: Iterable[ExternalId], excluded: Iterable[ExternalId]) -> Frontier:
        frontier = cls(excluded=frozenset(excluded))
        for seed in seeds:
            if seed in frontier.excluded or seed in frontier.visited:
                continue
            frontier.visited.add(seed)
            frontier.pending.append(seed)
        return frontier

    def offer(self, external_id: ExternalId) -> bool:
        """Mark ``external_id`` visited; return False if it was seen or excluded."""

        if external_id in self.excluded or external_id in self.visited:
            return False
        self.visited.add(external_id)
        return True

    def take_level(self) -> list[ExternalId]:
        if self.state is FrontierState.EXHAUSTED:
            raise RuntimeError("Frontier is exhausted")
        self.state = FrontierState.EXPANDING
        level = list(self.pending)
        self.pending.clear()
        return level

    def accept(self, external_id: ExternalId) -> None:
        self.discovered.append(external_id)
        self.pending.append(external_id)

    def reject(self, external_id: ExternalId, reason: str) -> None:
        self.filtered[external_id] = reason

    def finish_level(self, max_depth: int) -> None:
        self.depth += 1
        if not self.pending or (max_depth and self.depth >= max_depth):
            self.state = FrontierState.EXHAUSTED
            self.pending.clear()

    @property
    def exhausted(self) -> bool:
        return self.state is FrontierState.EXHAUSTED


@dataclass(slots=True, frozen=True)
class CollectionResult:
    discovered: tuple[ExternalId, ...]
    filtered: dict[ExternalId, str]
    records: dict[ExternalId, ExternalRecord]
    depth: int = 0


class RelationGraphCollector:
    """Collect ids related to a set of seeds from a :class:`SourceCatalog`.

    Records fetched during the run are kept in :attr:`records` so that the
    caller can reuse them without another round trip.
    """

    def __init__(
        self,
        source: SourceCatalog,
        classifier: NoiseClassifier,
        *,
        mode: RelationMode = RelationMode.ALL,
    ) -> None:
        self._source = source
        self._classifier = classifier
        self._mode = mode
        self.records: dict[ExternalId, ExternalRecord] = {}
        self._unfetchable: set[ExternalId] = set()

    def collect(
        self,
        seeds: Iterable[ExternalId],
        *,
        max_depth: int,
        excluded: Iterable[ExternalId] = (),
    ) -> CollectionResult:
        """Return the ids related to ``seeds`` within ``max_depth`` levels.

        ``max_depth == 0`` traverses until the graph is exhausted. Seeds and
        excluded ids never appear in the result.
        """

        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        frontier = Frontier.seeded(seeds, excluded)
        if self._mode is RelationMode.NONE or not frontier.pending:
            frontier.state = FrontierState.EXHAUSTED

        while not frontier.exhausted:
            level = frontier.take_level()
            self._ensure_fetched(level)

            fresh = [
                related_id
                for external_id in level
                for related_id in self._links(external_id)
                if frontier.offer(related_id)
            ]
            self._ensure_fetched(fresh)

            for related_id in fresh:
                self._admit(frontier, related_id)
            log.debug(
                "Collected level depth=%s fetched=%s admitted=%s",
                frontier.depth + 1,
                len(level),
                len(frontier.pending),
            )
            frontier.finish_level(max_depth)

        log.info(
            "Collected %s related ids (%s filtered) over %s levels",
            len(frontier.discovered),
            len(frontier.filtered),
            frontier.depth,
        )
        return CollectionResult(
            discovered=tuple(frontier.discovered),
            filtered=dict(frontier.filtered),
            records=dict(self.records),
            depth=frontier.depth,
        )

    def record_for(self, external_id: ExternalId) -> ExternalRecord | None:
        """Return a cached record, fetching it once if it was never requested."""

        self._ensure_fetched((external_id,))
        return self.records.get(external_id)

    def _admit(self, frontier: Frontier, external_id: ExternalId) -> None:
        record = self.records.get(external_id)
        if record is None:
            log.warning("Dropping unfetchable related id %s", external_id)
            return
        if record.kind is EntityKind.EXPANSION:
            verdict = self._classifier.classify(record.as_candidate())
            if verdict.filter:
                frontier.reject(external_id, verdict.reason or "filtered")
                return
        frontier.accept(external_id)

    def _links(self, external_id: ExternalId) -> Iterator[ExternalId]:
        record = self.records.get(external_id)
        if record is None:
            return
        yield from record.base_game_ids
        if self._mode is not RelationMode.ALL:
            return
        yield from record.expansion_ids
        yield from record.reimplements_ids
        yield from record.reimplemented_by_ids

    def _ensure_fetched(self, external_ids: Iterable[ExternalId]) -> None:
        missing = list(
            dict.fromkeys(
                external_id
                for external_id in external_ids
                if external_id not in self.records and external_id not in self._unfetchable
            )
        )
        if not missing:
            return
        for external_id, record in self._source.fetch_many(missing).items():
            if record is not None:
                self.records[external_id] = record
        self._unfetchable.update(
            external_id for external_id in missing if external_id not in self.records
        )
