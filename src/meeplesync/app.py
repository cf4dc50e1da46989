"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from meeplesync.adapters.bgg import BggCatalog
from meeplesync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from meeplesync.config import get_reconciliation_config
from meeplesync.domain.ports.unit_of_work import ReconciliationUnitOfWork
from meeplesync.domain.reconciliation import (
    NoiseClassifier,
    ReconciliationOrchestrator,
    add_relation,
    analyze,
    import_missing,
    plan_backfill,
    relink_from_snapshots,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from meeplesync.config.reconciliation import ReconciliationConfig
    from meeplesync.domain.model import ExternalId, RelationType, UpsertOutcome
    from meeplesync.domain.ports.fetching import SourceCatalog
    from meeplesync.domain.progress import ProgressEvent
    from meeplesync.domain.reconciliation import (
        BackfillPlan,
        ImportAnalysis,
        LinkReport,
        ReconciliationRequest,
    )

UnitOfWorkFactory = Callable[[], ReconciliationUnitOfWork]


log = getLogger(__name__)


def _default_unit_of_work_factory() -> UnitOfWorkFactory:
    if not is_started():
        startup()
    return SqlAlchemyUnitOfWork


def reconcile_catalog(
    request: ReconciliationRequest,
    *,
    source: SourceCatalog | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
) -> Iterator[ProgressEvent]:
    """Validate ``request`` and return the stream of progress events for its run.

    Raises :class:`InvalidRequestError` immediately; nothing is fetched until
    the returned iterator is consumed.
    """

    effective_config = config or get_reconciliation_config()
    orchestrator = ReconciliationOrchestrator(
        source or BggCatalog(),
        unit_of_work_factory or _default_unit_of_work_factory(),
        config=effective_config,
    )
    log.info(
        "Starting reconciliation: seeds=%s, mode=%s, max_depth=%s, resync=%s, excluded=%s",
        len(request.seed_ids),
        request.relation_mode,
        request.max_depth,
        request.resync,
        len(request.excluded_ids),
    )
    return orchestrator.run(request)


def analyze_import(
    request: ReconciliationRequest,
    *,
    source: SourceCatalog | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
) -> ImportAnalysis:
    """Preview ``request`` without writing anything."""

    return analyze(
        request,
        source or BggCatalog(),
        unit_of_work_factory or _default_unit_of_work_factory(),
        config=config or get_reconciliation_config(),
    )


def relink_relations(
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
) -> LinkReport:
    """Rebuild relation edges from the source snapshots already stored."""

    effective_config = config or get_reconciliation_config()
    return relink_from_snapshots(
        unit_of_work_factory or _default_unit_of_work_factory(),
        classifier=NoiseClassifier(effective_config.noise),
    )


def add_catalog_relation(
    source_external_id: ExternalId,
    target_external_id: ExternalId,
    relation_type: RelationType,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> UpsertOutcome:
    """Record a manual relation between two games that are already imported."""

    outcome = add_relation(
        unit_of_work_factory or _default_unit_of_work_factory(),
        source_external_id=source_external_id,
        target_external_id=target_external_id,
        relation_type=relation_type,
    )
    log.info(
        "Relation %s %s -> %s: %s", relation_type, source_external_id, target_external_id, outcome
    )
    return outcome


def plan_missing_relations(  # noqa: PLR0913
    *,
    game_external_id: ExternalId | None = None,
    family_slug: str | None = None,
    include_noise: bool = False,
    limit: int | None = None,
    source: SourceCatalog | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
) -> BackfillPlan:
    """Find games referenced by stored snapshots that were never imported."""

    effective_config = config or get_reconciliation_config()
    return plan_backfill(
        source or BggCatalog(),
        unit_of_work_factory or _default_unit_of_work_factory(),
        NoiseClassifier(effective_config.noise),
        game_external_id=game_external_id,
        family_slug=family_slug,
        include_noise=include_noise,
        limit=limit,
    )


def import_missing_relations(
    plan: BackfillPlan,
    *,
    source: SourceCatalog | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
) -> Iterator[ProgressEvent]:
    """Import the ids of ``plan`` and stream progress like :func:`reconcile_catalog`."""

    effective_config = config or get_reconciliation_config()
    orchestrator = ReconciliationOrchestrator(
        source or BggCatalog(),
        unit_of_work_factory or _default_unit_of_work_factory(),
        config=effective_config,
    )
    log.info("Importing %s missing related games", len(plan.importable))
    return import_missing(orchestrator, plan, chunk_size=effective_config.max_seeds)
