from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

from meeplesync.domain.model import RelationType, UpsertOutcome
from meeplesync.domain.progress import ProgressStatus, ProgressUpdate, RunComplete
from meeplesync.domain.reconciliation import (
    BackfillPlan,
    ImportAnalysis,
    LinkReport,
    MissingReference,
    ReconciliationRequest,
    ReferenceReason,
    RelationMode,
)
from meeplesync.ui import cli

if TYPE_CHECKING:
    from collections.abc import Iterator


def _lines(capsys: pytest.CaptureFixture[str]) -> list[dict[str, Any]]:
    return [json.loads(line) for line in capsys.readouterr().out.splitlines()]


def test_import_streams_json_lines(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: list[ReconciliationRequest] = []

    def fake_reconcile(request: ReconciliationRequest) -> Iterator[object]:
        captured.append(request)
        yield ProgressUpdate(174430, "Gloomhaven", ProgressStatus.IMPORTING)
        yield ProgressUpdate(174430, "Gloomhaven", ProgressStatus.SUCCESS)
        yield RunComplete(imported=1, synced=0, failed=0, skipped=0, duration_seconds=1.04)

    monkeypatch.setattr(cli, "reconcile_catalog", fake_reconcile)

    cli.main(["import", "174430", "--mode", "all", "--max-depth", "0", "--exclude", "7", "8"])

    [request] = captured
    assert request.seed_ids == (174430,)
    assert request.relation_mode is RelationMode.ALL
    assert request.max_depth == 0
    assert request.resync
    assert request.excluded_ids == frozenset({7, 8})
    lines = _lines(capsys)
    assert [line["type"] for line in lines] == ["progress", "progress", "complete"]
    assert lines[-1]["summary"]["duration"] == 1.0


def test_import_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: list[ReconciliationRequest] = []

    def fake_reconcile(request: ReconciliationRequest) -> Iterator[object]:
        captured.append(request)
        yield RunComplete(imported=0, synced=0, failed=0, skipped=1, duration_seconds=0)

    monkeypatch.setattr(cli, "reconcile_catalog", fake_reconcile)

    cli.main(["import", "1", "2", "--no-resync"])

    [request] = captured
    assert request.seed_ids == (1, 2)
    assert request.relation_mode is RelationMode.UPSTREAM
    assert request.max_depth is None
    assert not request.resync
    assert request.excluded_ids == frozenset()


@pytest.mark.parametrize(
    "argv",
    [
        ["import", "0"],
        ["import", "1", "--max-depth", "-2"],
        ["analyze", "5", "--exclude", "5"],
        ["backfill", "--limit", "0"],
    ],
)
def test_invalid_requests_exit_before_running(
    monkeypatch: pytest.MonkeyPatch, argv: list[str]
) -> None:
    def unexpected(*_: object, **__: object) -> None:
        raise AssertionError("should not run")

    monkeypatch.setattr(cli, "reconcile_catalog", unexpected)
    monkeypatch.setattr(cli, "analyze_import", unexpected)
    monkeypatch.setattr(cli, "plan_missing_relations", unexpected)

    with pytest.raises(SystemExit) as exc:
        cli.main(argv)

    assert exc.value.code == 2


def test_missing_ids_are_a_usage_error() -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["import"])

    assert exc.value.code == 2


def test_unexpected_failures_exit_with_one(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(_request: ReconciliationRequest) -> Iterator[object]:
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(cli, "reconcile_catalog", broken)

    with pytest.raises(SystemExit) as exc:
        cli.main(["import", "1"])

    assert exc.value.code == 1


def test_analyze_prints_the_preview(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def fake_analyze(request: ReconciliationRequest) -> ImportAnalysis:
        assert request.seed_ids == (3,)
        return ImportAnalysis(seeds=(), collected_ids=(4, 5), estimated_seconds=5)

    monkeypatch.setattr(cli, "analyze_import", fake_analyze)

    cli.main(["analyze", "3"])

    [payload] = _lines(capsys)
    assert payload["collected_ids"] == [4, 5]
    assert payload["estimated_seconds"] == 5


def test_relink_prints_counts(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(cli, "relink_relations", lambda: LinkReport(created=3, skipped=1))

    cli.main(["relink"])

    assert _lines(capsys) == [{"created": 3, "already_existed": 0, "skipped": 1}]


def test_relate_records_a_manual_relation(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    calls: list[tuple[int, int, RelationType]] = []

    def fake_relate(source: int, target: int, relation_type: RelationType) -> UpsertOutcome:
        calls.append((source, target, relation_type))
        return UpsertOutcome.CREATED

    monkeypatch.setattr(cli, "add_catalog_relation", fake_relate)

    cli.main(["relate", "295770", "174430", "--type", "sequel_to"])

    assert calls == [(295770, 174430, RelationType.SEQUEL_TO)]
    assert _lines(capsys) == [{"outcome": "created"}]


def test_serve_uses_host_and_port(monkeypatch: pytest.MonkeyPatch) -> None:
    served: list[tuple[str, int]] = []
    monkeypatch.setattr(cli, "_serve", lambda host, port: served.append((host, port)))

    cli.main(["serve", "--port", "9000"])

    assert served == [("127.0.0.1", 9000)]


_PLAN = BackfillPlan(
    missing=(MissingReference(3, ReferenceReason.EXPANSION, (1,)),),
    importable=(3,),
)


def test_backfill_dry_run_prints_the_plan(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    calls: list[dict[str, object]] = []

    def fake_plan(**kwargs: object) -> BackfillPlan:
        calls.append(kwargs)
        return _PLAN

    def unexpected(_plan: BackfillPlan) -> Iterator[object]:
        raise AssertionError("dry runs import nothing")

    monkeypatch.setattr(cli, "plan_missing_relations", fake_plan)
    monkeypatch.setattr(cli, "import_missing_relations", unexpected)

    cli.main(["backfill", "--dry-run", "--family", "root", "--limit", "5"])

    assert calls == [
        {"game_external_id": None, "family_slug": "root", "include_noise": False, "limit": 5}
    ]
    [payload] = _lines(capsys)
    assert payload["importable"] == [3]
    assert payload["missing"][0]["reason"] == "expansion"


def test_backfill_streams_the_import(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    calls: list[dict[str, object]] = []

    def fake_plan(**kwargs: object) -> BackfillPlan:
        calls.append(kwargs)
        return _PLAN

    def fake_import(plan: BackfillPlan) -> Iterator[object]:
        assert plan is _PLAN
        yield ProgressUpdate(3, "Root: The Underworld Expansion", ProgressStatus.SUCCESS)
        yield RunComplete(imported=1, synced=0, failed=0, skipped=0, duration_seconds=0.4)

    monkeypatch.setattr(cli, "plan_missing_relations", fake_plan)
    monkeypatch.setattr(cli, "import_missing_relations", fake_import)

    cli.main(["backfill", "--game", "1", "--include-noise"])

    assert calls == [
        {"game_external_id": 1, "family_slug": None, "include_noise": True, "limit": None}
    ]
    assert [line["type"] for line in _lines(capsys)] == ["progress", "complete"]
