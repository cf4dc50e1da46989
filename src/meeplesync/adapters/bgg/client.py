"""BoardGameGeek XML API v2 client."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING, Any

from meeplesync.adapters.http_resilience import ResilientClient
from meeplesync.adapters.pacing import RequestPacer

from .schema import BggXmlError, items_from_xml

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    import httpx

    from meeplesync.config.bgg import BggConfig
    from meeplesync.config.http_resilience import ResilienceConfig

log = getLogger(__name__)


class BggAPIError(RuntimeError):
    """Raised when BGG returns an unexpected response."""


class BggClient:
    """Low-level HTTP client for the BGG ``thing`` endpoint."""

    def __init__(
        self,
        *,
        config: BggConfig,
        pacer: RequestPacer | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self.pacer = pacer or RequestPacer(self._resilience.min_interval_seconds or 0.0)
        self._transport = transport
        self._client_factory = client_factory or self._default_client

    def fetch_things(self, ids: Sequence[int]) -> list[dict[str, Any]]:
        """Return the flattened ``<item>`` dicts for ``ids`` (at most one batch)."""

        if len(ids) > self._config.batch_size:
            raise ValueError(f"BGG accepts at most {self._config.batch_size} ids per request")
        return asyncio.run(self._fetch_things_async(ids))

    async def _fetch_things_async(self, ids: Sequence[int]) -> list[dict[str, Any]]:
        params = {"id": ",".join(str(value) for value in ids), "stats": "1"}
        async with self._client_factory(self._resilience) as client:
            response = await client.get("thing", params=params)

        # BGG answers 202 while it prepares a response; treat it as unavailable
        if response.status_code != 200:  # noqa: PLR2004
            raise BggAPIError(f"BGG returned HTTP {response.status_code} for ids {params['id']}")
        try:
            return items_from_xml(response.content)
        except BggXmlError as exc:
            raise BggAPIError(str(exc)) from exc

    def _default_client(self, config: ResilienceConfig) -> ResilientClient:
        return ResilientClient(config, pacer=self.pacer, transport=self._transport)
