"""HTTP API exposing analysis, import runs and relinking.

``POST /import/execute`` streams progress as server-sent events, one
``data: <json>`` record per event, and always ends with the ``complete``
event unless the client disconnects first.
"""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from meeplesync import app as services
from meeplesync.domain.reconciliation import (
    InvalidRequestError,
    ReconciliationRequest,
    RelationMode,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator

    from meeplesync.app import UnitOfWorkFactory
    from meeplesync.config.reconciliation import ReconciliationConfig
    from meeplesync.domain.ports import SourceCatalog
    from meeplesync.domain.progress import ProgressEvent

log = getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class ImportRequestBody(BaseModel):
    seed_ids: list[int] = Field(default_factory=list[int])
    relation_mode: RelationMode = RelationMode.UPSTREAM
    max_depth: int | None = None
    resync: bool = True
    excluded_ids: list[int] = Field(default_factory=list[int])

    def to_request(self) -> ReconciliationRequest:
        return ReconciliationRequest(
            seed_ids=tuple(self.seed_ids),
            relation_mode=self.relation_mode,
            max_depth=self.max_depth,
            resync=self.resync,
            excluded_ids=frozenset(self.excluded_ids),
        )


def format_sse(event: ProgressEvent) -> str:
    return f"data: {json.dumps(event.to_json())}\n\n"


async def _event_stream(events: Iterator[ProgressEvent], request: Request) -> AsyncIterator[str]:
    try:
        while True:
            if await request.is_disconnected():
                log.info("Client disconnected; stopping reconciliation run")
                break
            event = await run_in_threadpool(next, events, None)
            if event is None:
                break
            yield format_sse(event)
    finally:
        await run_in_threadpool(events.close)


def create_app(
    *,
    source_factory: Callable[[], SourceCatalog] | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ReconciliationConfig | None = None,
) -> FastAPI:
    """Build the API; factories default to the BGG catalog and the SQL store."""

    api = FastAPI(title="meeplesync")

    def source() -> SourceCatalog | None:
        return source_factory() if source_factory is not None else None

    @api.exception_handler(RequestValidationError)
    async def _invalid_body(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    @api.post("/import/analyze")
    def analyze_import(body: ImportRequestBody) -> dict[str, Any]:
        try:
            analysis = services.analyze_import(
                body.to_request(),
                source=source(),
                unit_of_work_factory=unit_of_work_factory,
                config=config,
            )
        except InvalidRequestError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return analysis.to_json()

    @api.post("/import/execute")
    def execute_import(body: ImportRequestBody, request: Request) -> StreamingResponse:
        try:
            events = services.reconcile_catalog(
                body.to_request(),
                source=source(),
                unit_of_work_factory=unit_of_work_factory,
                config=config,
            )
        except InvalidRequestError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return StreamingResponse(
            _event_stream(events, request),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @api.post("/relations/relink")
    def relink() -> dict[str, int]:
        report = services.relink_relations(
            unit_of_work_factory=unit_of_work_factory,
            config=config,
        )
        return {
            "created": report.created,
            "already_existed": report.already_existed,
            "skipped": report.skipped,
        }

    return api
