from __future__ import annotations

import uuid

from meeplesync.domain.progress import ProgressStatus, ProgressUpdate, RunComplete


def test_progress_update_serializes_optional_fields_only_when_set() -> None:
    local_id = uuid.uuid4()

    plain = ProgressUpdate(174430, "Gloomhaven", ProgressStatus.IMPORTING).to_json()
    done = ProgressUpdate(174430, "Gloomhaven", ProgressStatus.SUCCESS, local_id=local_id)
    failed = ProgressUpdate(3, "#3", ProgressStatus.FAILED, error="boom")

    assert plain == {
        "type": "progress",
        "external_id": 174430,
        "name": "Gloomhaven",
        "status": "importing",
    }
    assert done.to_json()["local_id"] == str(local_id)
    assert failed.to_json()["error"] == "boom"
    assert "local_id" not in failed.to_json()
    assert "family_id" not in done.to_json()


def test_progress_update_carries_the_family_of_an_imported_game() -> None:
    family_id = uuid.uuid4()

    payload = ProgressUpdate(
        174430,
        "Gloomhaven",
        ProgressStatus.SUCCESS,
        local_id=uuid.uuid4(),
        family_id=family_id,
        family_name="Gloomhaven",
    ).to_json()

    assert payload["family_id"] == str(family_id)
    assert payload["family_name"] == "Gloomhaven"


def test_run_complete_rounds_duration() -> None:
    payload = RunComplete(imported=3, synced=1, failed=1, skipped=0, duration_seconds=12.345)

    assert payload.to_json() == {
        "type": "complete",
        "summary": {"imported": 3, "synced": 1, "failed": 1, "skipped": 0, "duration": 12.3},
    }


def test_terminal_statuses() -> None:
    assert {status for status in ProgressStatus if status.is_terminal} == {
        ProgressStatus.SUCCESS,
        ProgressStatus.FAILED,
        ProgressStatus.SKIPPED,
    }
