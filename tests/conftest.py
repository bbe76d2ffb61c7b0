import asyncio
import json
from collections.abc import Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sse_starlette.sse import AppStatus, ServerSentEvent

from notex.settings import settings
from notex.storage import database


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'notes.db'}"


@pytest.fixture(autouse=True)
def override_db_settings(monkeypatch, database_url):
    monkeypatch.setattr(settings, "database_url", database_url)
    monkeypatch.setattr(settings, "database_echo", False)
    yield
    # Reset cached engine/session factory between tests to avoid cross-suite bleed
    database._engine = None
    database._session_factory = None


@pytest.fixture(autouse=True)
def reset_sse_exit_event():
    # sse-starlette keeps one process-wide exit event; each test runs on a fresh loop
    AppStatus.should_exit_event = None
    yield
    AppStatus.should_exit_event = None


@pytest_asyncio.fixture
async def db_session():
    await database.init_db()
    factory = database.get_session_factory()
    async with factory() as session:
        yield session
    await database.dispose_engine()


@pytest_asyncio.fixture
async def api_client():
    from app import app

    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest.fixture
def registry():
    from app import app

    return app.state.registry


def parse_frame(frame: str | ServerSentEvent) -> tuple[str, dict]:
    """Split one ``event:``/``data:`` frame into its name and decoded payload."""
    if isinstance(frame, ServerSentEvent):
        frame = frame.encode().decode()
    event_name = ""
    data = ""
    for line in frame.strip().split("\n"):
        if line.startswith("event: "):
            event_name = line[len("event: ") :]
        elif line.startswith("data: "):
            data = line[len("data: ") :]
    return event_name, json.loads(data)


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)
