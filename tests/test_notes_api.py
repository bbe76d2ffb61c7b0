from __future__ import annotations

import asyncio
from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from conftest import parse_frame, wait_until
from notex.broadcast import Subscriber
from notex.settings import settings
from notex.storage.notes import NoteRepository


def _listen(registry) -> Subscriber:
    sub = registry.open_subscriber("listener")
    registry.register(sub)
    return sub


def _frames(sub: Subscriber) -> list[tuple[str, dict]]:
    frames = []
    while not sub.queue.empty():
        frames.append(parse_frame(sub.queue.get_nowait()))
    return frames


@pytest.mark.asyncio
async def test_create_note_defaults_and_broadcast(api_client, registry):
    listener = _listen(registry)

    response = await api_client.post("/notes", json={"name": "Groceries"})

    assert response.status_code == 201
    note = response.json()
    assert isinstance(note["id"], int)
    assert note["name"] == "Groceries"
    assert note["bg_color"] == "#ffffff"
    assert note["description"] == ""
    assert note["created_at"] == note["updated_at"]

    frames = _frames(listener)
    assert len(frames) == 1
    name, payload = frames[0]
    assert name == "noteChange"
    assert payload["type"] == "created"
    assert payload["note"] == note
    assert isinstance(payload["timestamp"], int)


@pytest.mark.asyncio
async def test_create_trims_name(api_client):
    response = await api_client.post("/notes", json={"name": "  Padded  ", "description": "<p>hi</p>", "bg_color": "#ffeeaa"})
    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Padded"
    assert body["description"] == "<p>hi</p>"
    assert body["bg_color"] == "#ffeeaa"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"name": ""}, {"name": "   "}, {"description": "orphan"}])
async def test_create_requires_name(api_client, registry, payload):
    listener = _listen(registry)
    response = await api_client.post("/notes", json=payload)
    assert response.status_code == 400
    assert response.json()["error"] == "Name is required"
    assert _frames(listener) == []


@pytest.mark.asyncio
async def test_create_rejects_bad_color(api_client):
    response = await api_client.post("/notes", json={"name": "x", "bg_color": "blue"})
    assert response.status_code == 400
    assert "bg_color" in response.json()["error"]


@pytest.mark.asyncio
async def test_malformed_body_is_400(api_client):
    response = await api_client.post("/notes", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


@pytest.mark.asyncio
async def test_list_orders_by_updated_at(api_client):
    ids = []
    for name in ("first", "second", "third"):
        ids.append((await api_client.post("/notes", json={"name": name})).json()["id"])
    await api_client.put(f"/notes/{ids[0]}", json={"description": "touched"})

    response = await api_client.get("/notes")
    assert response.status_code == 200
    assert [n["id"] for n in response.json()] == [ids[0], ids[2], ids[1]]


@pytest.mark.asyncio
async def test_get_note(api_client):
    created = (await api_client.post("/notes", json={"name": "Single"})).json()

    response = await api_client.get(f"/notes/{created['id']}")
    assert response.status_code == 200
    assert response.json() == created

    missing = await api_client.get("/notes/4242")
    assert missing.status_code == 404
    assert missing.json() == {"error": "Note not found"}


@pytest.mark.asyncio
async def test_update_merges_and_broadcasts(api_client, registry):
    created = (await api_client.post("/notes", json={"name": "X", "description": "body"})).json()
    listener = _listen(registry)

    response = await api_client.put(f"/notes/{created['id']}", json={"bg_color": "#000000"})

    assert response.status_code == 200
    updated = response.json()
    assert updated["name"] == "X"
    assert updated["description"] == "body"
    assert updated["bg_color"] == "#000000"
    assert updated["created_at"] == created["created_at"]
    assert datetime.fromisoformat(updated["updated_at"]) > datetime.fromisoformat(created["updated_at"])

    (name, payload), = _frames(listener)
    assert payload["type"] == "updated"
    assert payload["note"] == updated


@pytest.mark.asyncio
async def test_update_null_fields_are_preserved(api_client):
    created = (await api_client.post("/notes", json={"name": "Keep", "description": "me"})).json()
    response = await api_client.put(f"/notes/{created['id']}", json={"name": None, "description": None})
    assert response.status_code == 200
    assert response.json()["name"] == "Keep"
    assert response.json()["description"] == "me"


@pytest.mark.asyncio
async def test_update_rejects_blank_name(api_client, registry):
    created = (await api_client.post("/notes", json={"name": "Keep"})).json()
    listener = _listen(registry)
    response = await api_client.put(f"/notes/{created['id']}", json={"name": "  "})
    assert response.status_code == 400
    assert _frames(listener) == []


@pytest.mark.asyncio
async def test_update_missing_note(api_client, registry):
    listener = _listen(registry)
    response = await api_client.put("/notes/999", json={"name": "ghost"})
    assert response.status_code == 404
    assert response.json() == {"error": "Note not found"}
    assert _frames(listener) == []


@pytest.mark.asyncio
async def test_delete_note_broadcasts_id_stub(api_client, registry):
    created = (await api_client.post("/notes", json={"name": "Temp"})).json()
    listener = _listen(registry)

    response = await api_client.delete(f"/notes/{created['id']}")

    assert response.status_code == 200
    assert response.json() == {"message": "Note deleted"}
    (name, payload), = _frames(listener)
    assert payload["type"] == "deleted"
    assert payload["note"] == {"id": created["id"]}
    assert (await api_client.get(f"/notes/{created['id']}")).status_code == 404


@pytest.mark.asyncio
async def test_delete_missing_note_has_no_event(api_client, registry):
    listener = _listen(registry)
    response = await api_client.delete("/notes/999")
    assert response.status_code == 404
    assert response.json()["error"] == "Note not found"
    assert _frames(listener) == []


@pytest.mark.asyncio
async def test_non_integer_id_is_400(api_client):
    response = await api_client.get("/notes/abc")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_storage_failure_on_create(api_client, registry, monkeypatch):
    async def broken_insert(self, **kwargs):
        raise OperationalError("INSERT INTO notes", {}, Exception("disk I/O error"))

    monkeypatch.setattr(NoteRepository, "insert", broken_insert)
    listener = _listen(registry)

    response = await api_client.post("/notes", json={"name": "Doomed"})

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Failed to create note"
    assert "disk I/O error" in body["details"]
    assert _frames(listener) == []


@pytest.mark.asyncio
async def test_storage_failure_on_update_is_generic(api_client, monkeypatch):
    created = (await api_client.post("/notes", json={"name": "Fine"})).json()

    async def broken_update(self, note_id, changes):
        raise OperationalError("UPDATE notes", {}, Exception("locked"))

    monkeypatch.setattr(NoteRepository, "update", broken_update)
    response = await api_client.put(f"/notes/{created['id']}", json={"name": "Nope"})
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to update note"}


@pytest.mark.asyncio
async def test_event_stream_end_to_end(api_client, registry):
    stream_request = asyncio.ensure_future(api_client.get("/notes/events", params={"client_id": "tab-1"}))
    await wait_until(lambda: registry.subscriber_count == 1)

    created = (await api_client.post("/notes", json={"name": "Live"})).json()
    await api_client.delete(f"/notes/{created['id']}")
    registry.close_all()

    response = await asyncio.wait_for(stream_request, 5)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"

    body = response.text
    assert body.startswith(": connected\n\n")
    frames = [parse_frame(chunk) for chunk in body.split("\n\n") if chunk.startswith("event:")]
    assert [payload["type"] for _, payload in frames] == ["created", "deleted"]
    assert frames[0][1]["note"] == created
    assert frames[1][1]["note"] == {"id": created["id"]}


@pytest.mark.asyncio
async def test_keepalive_schedule_ignores_event_traffic(api_client, registry, monkeypatch):
    monkeypatch.setattr(settings, "sse_keepalive_seconds", 0.2)
    stream_request = asyncio.ensure_future(api_client.get("/notes/events"))
    await wait_until(lambda: registry.subscriber_count == 1)

    created = (await api_client.post("/notes", json={"name": "Busy"})).json()
    # an event every 50 ms, well inside the keep-alive interval
    for revision in range(12):
        await api_client.put(f"/notes/{created['id']}", json={"description": f"rev {revision}"})
        await asyncio.sleep(0.05)
    registry.close_all()

    response = await asyncio.wait_for(stream_request, 5)
    chunks = response.text.split("\n\n")
    keepalives = [i for i, chunk in enumerate(chunks) if chunk == ": keep-alive"]
    events = [i for i, chunk in enumerate(chunks) if chunk.startswith("event: noteChange")]
    assert len(events) == 13
    assert len(keepalives) >= 2
    assert keepalives[0] < events[-1]


@pytest.mark.asyncio
async def test_correlation_id_header(api_client):
    response = await api_client.get("/health", headers={"X-Correlation-ID": "abc-123"})
    assert response.status_code == 200
    assert response.headers["X-Correlation-ID"] == "abc-123"
    assert "X-Process-Time-Ms" in response.headers
