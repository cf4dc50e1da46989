"""BGG implementation of the :class:`SourceCatalog` port."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from meeplesync.config.bgg import get_bgg_config

from .client import BggAPIError, BggClient
from .translator import translate_raw_item

if TYPE_CHECKING:
    from collections.abc import Iterable

    from meeplesync.config.bgg import BggConfig
    from meeplesync.domain.model import ExternalId, ExternalRecord

log = getLogger(__name__)


class BggCatalog:
    """Fetch records by id, in batches, without ever raising for a single id.

    Every requested id is present in the result of :meth:`fetch_many`; ids
    whose batch failed or whose item was missing or malformed map to ``None``.
    """

    def __init__(self, *, config: BggConfig | None = None, client: BggClient | None = None) -> None:
        self._config = config or get_bgg_config()
        self._client = client or BggClient(config=self._config)

    def fetch_one(self, external_id: ExternalId) -> ExternalRecord | None:
        return self.fetch_many((external_id,))[external_id]

    def fetch_many(
        self, external_ids: Iterable[ExternalId]
    ) -> dict[ExternalId, ExternalRecord | None]:
        ids = list(dict.fromkeys(external_ids))
        results: dict[ExternalId, ExternalRecord | None] = dict.fromkeys(ids)
        batch_size = self._config.batch_size
        for start in range(0, len(ids), batch_size):
            batch = ids[start : start + batch_size]
            results.update(self._fetch_batch(batch))
        return results

    def _fetch_batch(self, batch: list[ExternalId]) -> dict[ExternalId, ExternalRecord | None]:
        try:
            raw_items = self._client.fetch_things(batch)
        except (BggAPIError, httpx.HTTPError) as exc:
            log.warning("BGG fetch failed for ids %s: %s", batch, exc)
            return dict.fromkeys(batch)

        requested = set(batch)
        records: dict[ExternalId, ExternalRecord | None] = dict.fromkeys(batch)
        for raw in raw_items:
            record = translate_raw_item(raw)
            if record is None:
                continue
            if record.external_id not in requested:
                log.warning("BGG returned unrequested id %s", record.external_id)
                continue
            records[record.external_id] = record
        missing = [external_id for external_id in batch if records[external_id] is None]
        if missing:
            log.warning("BGG returned no usable record for ids %s", missing)
        return records
