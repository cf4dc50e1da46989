"""Progress events emitted while a reconciliation run is in flight."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from uuid import UUID

    from .model import ExternalId


class ProgressStatus(StrEnum):
    IMPORTING = "importing"
    SYNCING = "syncing"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in {ProgressStatus.SUCCESS, ProgressStatus.FAILED, ProgressStatus.SKIPPED}


@dataclass(slots=True, frozen=True)
class ProgressUpdate:
    external_id: ExternalId
    name: str
    status: ProgressStatus
    error: str | None = None
    local_id: UUID | None = None
    family_id: UUID | None = None
    family_name: str | None = None

    def to_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": "progress",
            "external_id": self.external_id,
            "name": self.name,
            "status": self.status.value,
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.local_id is not None:
            payload["local_id"] = str(self.local_id)
        if self.family_id is not None:
            payload["family_id"] = str(self.family_id)
            payload["family_name"] = self.family_name
        return payload


@dataclass(slots=True, frozen=True)
class RunComplete:
    imported: int
    synced: int
    failed: int
    skipped: int
    duration_seconds: float

    def to_json(self) -> dict[str, Any]:
        return {
            "type": "complete",
            "summary": {
                "imported": self.imported,
                "synced": self.synced,
                "failed": self.failed,
                "skipped": self.skipped,
                "duration": round(self.duration_seconds, 1),
            },
        }


type ProgressEvent = ProgressUpdate | RunComplete
