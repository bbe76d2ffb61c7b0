"""FastAPI service exposing NoteX notes and their live change stream."""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager, suppress
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sse_starlette.sse import EventSourceResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from notex.broadcast import BroadcastRegistry
from notex.errors import NoteError
from notex.health import check_all_dependencies
from notex.logging_config import setup_logging
from notex.metrics import latest_metrics
from notex.middleware import RequestContextMiddleware
from notex.models import DeleteResult, NoteCreate, NoteOut, NoteUpdate
from notex.notifier import ChangeNotifier
from notex.service import NoteService
from notex.settings import settings
from notex.storage.database import dispose_engine, get_db, init_db
from notex.storage.notes import NoteRepository
from notex.subscriptions import event_stream_response, sweep_idle_subscribers

setup_logging(settings)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    registry = BroadcastRegistry(
        queue_maxsize=settings.sse_queue_maxsize,
        idle_timeout=settings.sse_idle_timeout_seconds,
    )
    app.state.registry = registry
    sweeper: asyncio.Task | None = None
    if registry.idle_timeout:
        sweeper = asyncio.create_task(sweep_idle_subscribers(registry, settings.sse_keepalive_seconds))
    logger.info("NoteX service started")
    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper
        registry.close_all()
        app.state.registry = None
        await dispose_engine()
        logger.info("NoteX service stopped")


app = FastAPI(title="NoteX", version="0.1.0", lifespan=lifespan)

app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_registry(request: Request) -> BroadcastRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise RuntimeError("Broadcast registry is not running")
    return registry


RegistryDep = Annotated[BroadcastRegistry, Depends(get_registry)]


def get_note_service(registry: RegistryDep, db: AsyncSession = Depends(get_db)) -> NoteService:
    return NoteService(NoteRepository(db), ChangeNotifier(registry))


ServiceDep = Annotated[NoteService, Depends(get_note_service)]


@app.exception_handler(NoteError)
async def note_error_handler(_request: Request, exc: NoteError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": problems})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/health/ready")
async def health_ready(request: Request) -> dict[str, Any]:
    """Deep health check: verifies the database and the broadcast registry."""
    return await check_all_dependencies(getattr(request.app.state, "registry", None))


@app.get("/metrics")
async def metrics() -> PlainTextResponse:
    content = latest_metrics()
    return PlainTextResponse(content, media_type="text/plain; version=0.0.4")


@app.get("/notes/events")
async def note_events(registry: RegistryDep, client_id: str | None = None) -> EventSourceResponse:
    """Long-lived SSE stream of ``noteChange`` events."""
    subscriber = registry.open_subscriber(client_id or f"client-{uuid.uuid4().hex[:8]}")
    return event_stream_response(registry, subscriber, keepalive_interval=settings.sse_keepalive_seconds)


@app.get("/notes", response_model=list[NoteOut])
async def list_notes(service: ServiceDep) -> list[NoteOut]:
    return await service.list_notes()


@app.get("/notes/{note_id}", response_model=NoteOut)
async def get_note(note_id: int, service: ServiceDep) -> NoteOut:
    return await service.get_note(note_id)


@app.post("/notes", response_model=NoteOut, status_code=201)
async def create_note(payload: NoteCreate, service: ServiceDep) -> NoteOut:
    return await service.create_note(payload)


@app.put("/notes/{note_id}", response_model=NoteOut)
async def update_note(note_id: int, payload: NoteUpdate, service: ServiceDep) -> NoteOut:
    return await service.update_note(note_id, payload)


@app.delete("/notes/{note_id}", response_model=DeleteResult)
async def delete_note(note_id: int, service: ServiceDep) -> DeleteResult:
    await service.delete_note(note_id)
    return DeleteResult()


__all__ = ["app", "get_registry", "get_note_service"]


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    # keep the handlers installed by setup_logging
    uvicorn.run("app:app", host="0.0.0.0", port=settings.port, log_config=None)
