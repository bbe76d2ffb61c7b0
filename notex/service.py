"""Note mutation API: validation, persistence and change notification."""

from __future__ import annotations

import logging
import re
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from notex.errors import NotFoundError, PersistenceError, ValidationError
from notex.metrics import record_mutation
from notex.models import DEFAULT_BG_COLOR, NoteCreate, NoteOut, NoteUpdate
from notex.notifier import ChangeNotifier
from notex.storage.notes import NoteRepository

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Name is required")
    return cleaned


def _check_color(color: str) -> str:
    if not _HEX_COLOR.match(color):
        raise ValidationError("bg_color must be a hex color such as #ffffff")
    return color


class NoteService:
    """CRUD over notes; every successful write is broadcast.

    Validation and not-found failures are raised before anything is written,
    so they never reach the notifier. Storage failures are reported as
    ``PersistenceError`` and likewise produce no event.
    """

    def __init__(self, repository: NoteRepository, notifier: ChangeNotifier) -> None:
        self.repository = repository
        self.notifier = notifier

    async def list_notes(self) -> list[NoteOut]:
        try:
            rows = await self.repository.list_all()
        except SQLAlchemyError as exc:
            logger.exception("Error listing notes")
            raise PersistenceError("Internal server error") from exc
        return [NoteOut.model_validate(row) for row in rows]

    async def get_note(self, note_id: int) -> NoteOut:
        try:
            row = await self.repository.get(note_id)
        except SQLAlchemyError as exc:
            logger.exception("Error getting note %s", note_id)
            raise PersistenceError("Failed to get note") from exc
        if row is None:
            raise NotFoundError()
        return NoteOut.model_validate(row)

    async def create_note(self, payload: NoteCreate) -> NoteOut:
        name = _clean_name(payload.name)
        bg_color = _check_color(payload.bg_color or DEFAULT_BG_COLOR)
        try:
            row = await self.repository.insert(
                name=name,
                description=payload.description or "",
                bg_color=bg_color,
            )
        except SQLAlchemyError as exc:
            record_mutation("create", "error")
            logger.exception("Error creating note")
            raise PersistenceError("Failed to create note", details=str(exc)) from exc

        note = NoteOut.model_validate(row)
        record_mutation("create", "success")
        logger.info("Note created", extra={"note_id": note.id})
        self.notifier.created(note)
        return note

    async def update_note(self, note_id: int, payload: NoteUpdate) -> NoteOut:
        changes: dict[str, Any] = payload.model_dump(exclude_none=True)
        if "name" in changes:
            changes["name"] = _clean_name(changes["name"])
        if "bg_color" in changes:
            _check_color(changes["bg_color"])

        try:
            row = await self.repository.update(note_id, changes)
        except SQLAlchemyError as exc:
            record_mutation("update", "error")
            logger.exception("Error updating note %s", note_id)
            raise PersistenceError("Failed to update note") from exc
        if row is None:
            record_mutation("update", "not_found")
            raise NotFoundError()

        note = NoteOut.model_validate(row)
        record_mutation("update", "success")
        logger.info("Note updated", extra={"note_id": note.id, "fields": sorted(changes)})
        self.notifier.updated(note)
        return note

    async def delete_note(self, note_id: int) -> None:
        try:
            removed = await self.repository.delete(note_id)
        except SQLAlchemyError as exc:
            record_mutation("delete", "error")
            logger.exception("Error deleting note %s", note_id)
            raise PersistenceError("Failed to delete note") from exc
        if not removed:
            record_mutation("delete", "not_found")
            raise NotFoundError()

        record_mutation("delete", "success")
        logger.info("Note deleted", extra={"note_id": note_id})
        self.notifier.deleted(note_id)


__all__ = ["NoteService"]
