from __future__ import annotations

import argparse
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from meeplesync.app import (
    add_catalog_relation,
    analyze_import,
    import_missing_relations,
    plan_missing_relations,
    reconcile_catalog,
    relink_relations,
)
from meeplesync.config import ConfigurationError, configure_logging, get_reconciliation_config
from meeplesync.domain.model import RelationType
from meeplesync.domain.progress import RunComplete
from meeplesync.domain.reconciliation import (
    InvalidRequestError,
    ReconciliationRequest,
    RelationMode,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def _add_request_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "ids",
        type=int,
        nargs="+",
        help="BoardGameGeek ids to start from",
    )
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in RelationMode],
        default=RelationMode.UPSTREAM.value,
        help="Which relations to follow (default: %(default)s)",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="Levels of related games to collect, 0 for unbounded "
        "(default: MEEPLESYNC_MAX_DEPTH, else 3)",
    )
    parser.add_argument(
        "--exclude",
        type=int,
        nargs="*",
        default=[],
        help="BoardGameGeek ids never to import",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile the BoardGameGeek catalog")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser(
        "import", help="Import or resync games and their relations"
    )
    _add_request_arguments(import_parser)
    import_parser.add_argument(
        "--no-resync",
        action="store_true",
        help="Skip games that are already in the catalog instead of refreshing them",
    )

    analyze_parser = subparsers.add_parser("analyze", help="Preview an import without writing")
    _add_request_arguments(analyze_parser)

    subparsers.add_parser("relink", help="Rebuild relations from stored source snapshots")

    backfill = subparsers.add_parser(
        "backfill", help="Import games referenced by stored snapshots but never imported"
    )
    backfill.add_argument(
        "--dry-run", action="store_true", help="Print the plan without importing anything"
    )
    backfill.add_argument("--limit", type=int, help="Import at most this many games")
    backfill.add_argument(
        "--game", dest="game_id", type=int, help="Only follow references of this BGG id"
    )
    backfill.add_argument("--family", help="Only follow references of games in this family slug")
    backfill.add_argument(
        "--include-noise",
        action="store_true",
        help="Also import promos, fan expansions and accessories",
    )

    relate = subparsers.add_parser("relate", help="Record a relation between two imported games")
    relate.add_argument("source_id", type=int, help="BGG id of the dependent game")
    relate.add_argument("target_id", type=int, help="BGG id of the game it relates to")
    relate.add_argument(
        "--type",
        dest="relation_type",
        choices=[relation.value for relation in RelationType],
        required=True,
        help="Relation type",
    )

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=DEFAULT_HOST, help="Bind address (default: %(default)s)")
    serve.add_argument(
        "--port", type=int, default=DEFAULT_PORT, help="Bind port (default: %(default)s)"
    )

    return parser.parse_args(list(argv))


def _build_request(args: argparse.Namespace) -> ReconciliationRequest:
    request = ReconciliationRequest(
        seed_ids=tuple(args.ids),
        relation_mode=RelationMode(args.mode),
        max_depth=args.max_depth,
        resync=not getattr(args, "no_resync", False),
        excluded_ids=frozenset(args.exclude),
    )
    request.validated_seeds(max_seeds=get_reconciliation_config().max_seeds)
    return request


def _emit(payload: dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(payload) + "\n")
    sys.stdout.flush()


def _backfill(args: argparse.Namespace) -> int:
    plan = plan_missing_relations(
        game_external_id=args.game_id,
        family_slug=args.family,
        include_noise=args.include_noise,
        limit=args.limit,
    )
    if args.dry_run:
        _emit(plan.to_json())
        return 0
    failed = 0
    for event in import_missing_relations(plan):
        _emit(event.to_json())
        if isinstance(event, RunComplete):
            failed = event.failed
    return failed


def _serve(host: str, port: int) -> None:
    import uvicorn  # noqa: PLC0415

    from meeplesync.adapters.web import create_app  # noqa: PLC0415

    uvicorn.run(create_app(), host=host, port=port)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    request: ReconciliationRequest | None = None
    try:
        parsed_args = _parse_args(args_list)
        if parsed_args.command in {"import", "analyze"}:
            request = _build_request(parsed_args)
        limit = getattr(parsed_args, "limit", None)
        if limit is not None and limit < 1:
            raise ValueError("--limit must be a positive integer")  # noqa: TRY301
    except (InvalidRequestError, ConfigurationError, ValueError):
        log.exception("CLI validation error")
        sys.exit(2)

    failed = 0
    try:
        if parsed_args.command == "import" and request is not None:
            for event in reconcile_catalog(request):
                _emit(event.to_json())
                if isinstance(event, RunComplete):
                    failed = event.failed
        elif parsed_args.command == "analyze" and request is not None:
            _emit(analyze_import(request).to_json())
        elif parsed_args.command == "relink":
            report = relink_relations()
            _emit(
                {
                    "created": report.created,
                    "already_existed": report.already_existed,
                    "skipped": report.skipped,
                }
            )
        elif parsed_args.command == "backfill":
            failed = _backfill(parsed_args)
        elif parsed_args.command == "relate":
            outcome = add_catalog_relation(
                parsed_args.source_id,
                parsed_args.target_id,
                RelationType(parsed_args.relation_type),
            )
            _emit({"outcome": outcome.value})
        elif parsed_args.command == "serve":
            _serve(parsed_args.host, parsed_args.port)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during reconciliation")
        sys.exit(1)

    if failed:
        log.warning("%s ids failed; see the progress events above", failed)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
