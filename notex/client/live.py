"""Client session that keeps a local note list in step with the server."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

import httpx

from notex.client.api import NotesAPIError, NotesClient
from notex.client.store import NoteDict, apply_change, sort_notes_by_latest
from notex.models import DEFAULT_BG_COLOR
from notex.utils.datetime import epoch_millis

logger = logging.getLogger(__name__)

NOTIFICATION_TTL_SECONDS = 2.5

EDITABLE_FIELDS = ("name", "description", "bg_color")


@dataclass(frozen=True)
class Notification:
    kind: Literal["success", "error"]
    message: str
    expires_at: float = field(default_factory=lambda: time.monotonic() + NOTIFICATION_TTL_SECONDS)

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at


class LiveNotes:
    """Local list of notes fed by REST calls and the change stream.

    Local writes are applied only after the server accepted them; the pushed
    echo of the same change then reconciles to a no-op (create) or an
    identical replacement (update).
    """

    def __init__(
        self,
        client: NotesClient,
        on_notify: Callable[[Notification], None] | None = None,
    ) -> None:
        self.client = client
        self.on_notify = on_notify
        self.notes: list[NoteDict] = []
        self._notification: Notification | None = None

    @property
    def notification(self) -> Notification | None:
        if self._notification is not None and self._notification.expired:
            self._notification = None
        return self._notification

    def notify(self, kind: Literal["success", "error"], message: str) -> None:
        self._notification = Notification(kind, message)
        if self.on_notify is not None:
            self.on_notify(self._notification)

    def apply(self, change: Mapping[str, Any]) -> list[NoteDict]:
        self.notes = apply_change(self.notes, change)
        return self.notes

    async def load(self) -> list[NoteDict]:
        try:
            data = await self.client.fetch_notes()
        except (NotesAPIError, httpx.HTTPError):
            logger.exception("Failed to load notes")
            self.notify("error", "Failed to load notes")
            raise
        self.notes = sort_notes_by_latest(data)
        return self.notes

    async def save(self, draft: Mapping[str, Any]) -> NoteDict | None:
        """Create or update depending on whether *draft* carries an id.

        Updates send only the editable fields present in *draft*, so the
        server keeps whatever the draft leaves out.
        """
        note_id = draft.get("id")
        if note_id:
            payload = {key: draft[key] for key in EDITABLE_FIELDS if key in draft}
            if isinstance(payload.get("name"), str):
                payload["name"] = payload["name"].strip()
        else:
            payload = {
                "name": (draft.get("name") or "").strip(),
                "description": draft.get("description") or "",
                "bg_color": draft.get("bg_color") or DEFAULT_BG_COLOR,
            }
        try:
            if note_id:
                saved = await self.client.update_note(note_id, payload)
            else:
                saved = await self.client.create_note(payload)
        except (NotesAPIError, httpx.HTTPError):
            logger.exception("Failed to save note")
            self.notify("error", "Failed to save note")
            return None

        self.apply({"type": "updated" if note_id else "created", "note": saved, "timestamp": epoch_millis()})
        self.notify("success", "Note updated" if note_id else "Note created")
        return saved

    async def delete(self, note_id: int) -> bool:
        try:
            await self.client.delete_note(note_id)
        except (NotesAPIError, httpx.HTTPError):
            logger.exception("Failed to delete note %s", note_id)
            self.notify("error", "Failed to delete note")
            return False

        self.apply({"type": "deleted", "note": {"id": note_id}, "timestamp": epoch_millis()})
        self.notify("success", "Note deleted")
        return True

    async def follow(
        self,
        *,
        client_id: str | None = None,
        reconnect: bool = True,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        on_change: Callable[[Mapping[str, Any]], None] | None = None,
    ) -> None:
        """Apply pushed events until cancelled.

        The server keeps no backlog, so after a dropped connection the list
        is reloaded before listening again.
        """
        attempt = 0
        while True:
            try:
                if attempt:
                    await self.load()
                async for change in self.client.stream_changes(client_id=client_id):
                    attempt = 0
                    self.apply(change)
                    if on_change is not None:
                        on_change(change)
                logger.info("Change stream closed by server")
            except (NotesAPIError, httpx.HTTPError) as exc:
                logger.warning("Change stream error: %s", exc)
            if not reconnect:
                return
            attempt += 1
            delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
            delay += random.uniform(0, delay * 0.1)
            await asyncio.sleep(delay)


__all__ = ["LiveNotes", "Notification", "NOTIFICATION_TTL_SECONDS"]
