"""Drive a reconciliation run from seed ids to persisted games and relations.

``ReconciliationOrchestrator.run`` validates the request eagerly and returns a
generator of progress events. Every processed id produces exactly one terminal
status and the generator always ends with a single :class:`RunComplete`. A
consumer that stops early simply closes the generator; the id in flight is
rolled back and no summary is produced.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from meeplesync.config.reconciliation import ReconciliationConfig
from meeplesync.domain.model import Game, is_external_id
from meeplesync.domain.progress import ProgressStatus, ProgressUpdate, RunComplete

from .families import FamilyLinker
from .frontier import RelationGraphCollector, RelationMode
from .matching import match_entity
from .noise import NoiseClassifier
from .relations import RelationLinker, RelationWriter

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from meeplesync.domain.model import ExternalId, ExternalRecord, GameFamily
    from meeplesync.domain.ports import ReconciliationUnitOfWork, SourceCatalog
    from meeplesync.domain.progress import ProgressEvent

log = getLogger(__name__)


class InvalidRequestError(ValueError):
    """Raised when a reconciliation request cannot be run."""


class RecordUnavailableError(RuntimeError):
    """Raised when the external catalog has no usable record for an id."""


@dataclass(slots=True, frozen=True)
class ReconciliationRequest:
    """What to reconcile. ``max_depth=None`` defers to the configured default."""

    seed_ids: tuple[ExternalId, ...]
    relation_mode: RelationMode = RelationMode.UPSTREAM
    max_depth: int | None = None
    resync: bool = True
    excluded_ids: frozenset[ExternalId] = frozenset()

    def validated_seeds(self, *, max_seeds: int) -> tuple[ExternalId, ...]:
        """Return the deduplicated seeds left after exclusions.

        Raises :class:`InvalidRequestError` before anything touches the network.
        """

        if not self.seed_ids:
            raise InvalidRequestError("At least one seed id is required")
        if len(self.seed_ids) > max_seeds:
            raise InvalidRequestError(f"At most {max_seeds} seed ids may be requested per run")
        invalid = [
            value for value in (*self.seed_ids, *self.excluded_ids) if not is_external_id(value)
        ]
        if invalid:
            raise InvalidRequestError(f"Ids must be positive integers, got {invalid!r}")
        if self.max_depth is not None:
            if isinstance(self.max_depth, bool) or not isinstance(self.max_depth, int):
                raise InvalidRequestError("max_depth must be an integer")
            if self.max_depth < 0:
                raise InvalidRequestError("max_depth must be >= 0")
        seeds = tuple(
            seed for seed in dict.fromkeys(self.seed_ids) if seed not in self.excluded_ids
        )
        if not seeds:
            raise InvalidRequestError("Every seed id is excluded")
        return seeds

    def depth_or(self, default: int) -> int:
        return default if self.max_depth is None else self.max_depth


@dataclass(slots=True)
class _RunState:
    collector: RelationGraphCollector
    noise_ids: frozenset[ExternalId] = frozenset()
    imported: int = 0
    synced: int = 0
    failed: int = 0
    skipped: int = 0
    processed: set[ExternalId] = field(default_factory=set["ExternalId"])


class ReconciliationOrchestrator:
    """Import or resync a set of catalog ids and their related games."""

    def __init__(
        self,
        source: SourceCatalog,
        unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
        *,
        config: ReconciliationConfig | None = None,
        classifier: NoiseClassifier | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._unit_of_work_factory = unit_of_work_factory
        self._config = config or ReconciliationConfig()
        self._classifier = classifier or NoiseClassifier(self._config.noise)
        self._clock = clock
        self._now = now or (lambda: datetime.now(tz=UTC))

    def run(
        self,
        request: ReconciliationRequest,
        *,
        prefetched: Mapping[ExternalId, ExternalRecord] | None = None,
    ) -> Iterator[ProgressEvent]:
        """Validate ``request`` and return its event stream.

        ``prefetched`` records are used as they are instead of being fetched again.
        """

        seeds = request.validated_seeds(max_seeds=self._config.max_seeds)
        return self._events(request, seeds, prefetched or {})

    def _events(
        self,
        request: ReconciliationRequest,
        seeds: tuple[ExternalId, ...],
        prefetched: Mapping[ExternalId, ExternalRecord],
    ) -> Iterator[ProgressEvent]:
        started = self._clock()
        max_depth = request.depth_or(self._config.default_max_depth)
        collector = RelationGraphCollector(
            self._source, self._classifier, mode=request.relation_mode
        )
        collector.records.update(prefetched)
        state = _RunState(collector=collector)

        ids: tuple[ExternalId, ...] = seeds
        if request.relation_mode is not RelationMode.NONE:
            try:
                result = collector.collect(
                    seeds, max_depth=max_depth, excluded=request.excluded_ids
                )
            except Exception:
                log.exception("Collecting related ids failed; reconciling the seeds only")
            else:
                state.noise_ids = frozenset(result.filtered)
                ids = (*seeds, *result.discovered)

        log.info(
            "Reconciling %s ids (mode=%s depth=%s resync=%s)",
            len(ids),
            request.relation_mode,
            max_depth,
            request.resync,
        )
        for external_id in ids:
            if external_id in request.excluded_ids or external_id in state.processed:
                continue
            state.processed.add(external_id)
            yield from self._process(external_id, request, state)

        yield RunComplete(
            imported=state.imported,
            synced=state.synced,
            failed=state.failed,
            skipped=state.skipped,
            duration_seconds=self._clock() - started,
        )

    def _process(
        self, external_id: ExternalId, request: ReconciliationRequest, state: _RunState
    ) -> Iterator[ProgressEvent]:
        name = f"#{external_id}"
        status = ProgressStatus.IMPORTING
        try:
            with self._unit_of_work_factory() as uow:
                existing = uow.repositories.games.get_by_external_id(external_id)
                if existing is not None and not request.resync:
                    state.skipped += 1
                    yield ProgressUpdate(
                        external_id, existing.name, ProgressStatus.SKIPPED, local_id=existing.id
                    )
                    return
                if existing is not None:
                    name = existing.name
                    status = ProgressStatus.SYNCING
                    yield ProgressUpdate(external_id, name, status)
                    game, family = self._resync(uow, existing, state)
                else:
                    record = self._record_or_none(external_id, state)
                    if record is not None:
                        name = record.name
                    yield ProgressUpdate(external_id, name, status)
                    if record is None:
                        raise RecordUnavailableError(
                            f"Could not fetch record {external_id} from the external catalog"
                        )
                    game, family = self._import(uow, record, state)
                uow.commit()
        except Exception as exc:  # noqa: BLE001
            log.warning("Failed to %s %s: %s", _verb(status), external_id, exc)
            state.failed += 1
            yield ProgressUpdate(external_id, name, ProgressStatus.FAILED, error=str(exc))
            return

        if status is ProgressStatus.SYNCING:
            state.synced += 1
        else:
            state.imported += 1
        yield ProgressUpdate(
            external_id,
            game.name,
            ProgressStatus.SUCCESS,
            local_id=game.id,
            family_id=family.id if family is not None else None,
            family_name=family.name if family is not None else None,
        )

    def _import(
        self, uow: ReconciliationUnitOfWork, record: ExternalRecord, state: _RunState
    ) -> tuple[Game, GameFamily | None]:
        games = uow.repositories.games
        match = match_entity(
            record.name,
            games.list_unlinked(),
            family_hint=record.series_name,
            external_id=record.external_id,
            contains_overlap=self._config.contains_overlap,
        )
        if match.confident and match.entity is not None:
            game = match.entity
            log.info(
                "Linked %r to existing game %r (%s)", record.name, game.name, match.match_type
            )
            game.apply_record(record, synced_at=self._now())
            family = FamilyLinker(uow.repositories.families).link(game, record)
        else:
            game = Game.from_record(record, synced_at=self._now())
            # the family row must be flushed before the game that references it
            family = FamilyLinker(uow.repositories.families).link(game, record)
            games.add(game)
        self._link(uow, game, record, state)
        return game, family

    def _resync(
        self, uow: ReconciliationUnitOfWork, game: Game, state: _RunState
    ) -> tuple[Game, GameFamily | None]:
        if game.external_id is None:
            raise RecordUnavailableError(f"Game {game.name!r} has no external id")
        record = self._record_or_none(game.external_id, state)
        if record is None:
            raise RecordUnavailableError(
                f"Could not fetch record {game.external_id} from the external catalog"
            )
        game.apply_record(record, synced_at=self._now())
        family = FamilyLinker(uow.repositories.families).link(game, record)
        self._link(uow, game, record, state)
        return game, family

    def _record_or_none(
        self, external_id: ExternalId, state: _RunState
    ) -> ExternalRecord | None:
        # records collected during this run are already fresh
        record = state.collector.records.get(external_id)
        if record is None:
            record = self._source.fetch_one(external_id)
        return record

    def _link(
        self,
        uow: ReconciliationUnitOfWork,
        game: Game,
        record: ExternalRecord,
        state: _RunState,
    ) -> None:
        linker = RelationLinker(
            uow.repositories.games,
            RelationWriter(uow.repositories.relations),
            noise_ids=state.noise_ids,
            classifier=self._classifier,
        )
        report = linker.link(game, record)
        log.debug(
            "Linked %r: created=%s already_existed=%s skipped=%s",
            game.name,
            report.created,
            report.already_existed,
            report.skipped,
        )


def _verb(status: ProgressStatus) -> str:
    return "resync" if status is ProgressStatus.SYNCING else "import"
