"""Ports for reading records from the external catalog."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

    from meeplesync.domain.model import ExternalId, ExternalRecord


@runtime_checkable
class SourceCatalog(Protocol):
    """Read access to the external catalog.

    Implementations never raise for an individual id: a record that cannot be
    fetched or validated is reported as ``None``.
    """

    def fetch_one(self, external_id: ExternalId) -> ExternalRecord | None: ...

    def fetch_many(
        self, external_ids: Iterable[ExternalId]
    ) -> dict[ExternalId, ExternalRecord | None]: ...


__all__ = ["SourceCatalog"]
