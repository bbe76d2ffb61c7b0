"""Persistence helpers for notes."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import delete, desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from notex.models import DEFAULT_BG_COLOR
from notex.storage.database import Note
from notex.utils.datetime import utc_now

UPDATABLE_FIELDS = ("name", "description", "bg_color")


class NoteRepository:
    """CRUD by id over the ``notes`` table.

    Every mutating call commits before returning, so callers may treat a
    returned row as durable. Storage errors roll the session back and
    propagate as ``SQLAlchemyError``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_all(self) -> Sequence[Note]:
        stmt = select(Note).order_by(desc(Note.updated_at), desc(Note.id))
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get(self, note_id: int) -> Note | None:
        return await self.session.get(Note, note_id)

    async def insert(self, *, name: str, description: str = "", bg_color: str = DEFAULT_BG_COLOR) -> Note:
        now = utc_now()
        note = Note(
            name=name,
            description=description,
            bg_color=bg_color,
            created_at=now,
            updated_at=now,
        )
        try:
            self.session.add(note)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return note

    async def update(self, note_id: int, changes: dict[str, Any]) -> Note | None:
        """Apply *changes* to an existing note; ``None`` when the id is unknown."""
        try:
            note = await self.session.get(Note, note_id)
            if note is None:
                return None
            for field, value in changes.items():
                if field in UPDATABLE_FIELDS:
                    setattr(note, field, value)
            note.updated_at = utc_now()
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return note

    async def delete(self, note_id: int) -> bool:
        """Delete by id; returns whether a row was removed."""
        try:
            result = await self.session.execute(delete(Note).where(Note.id == note_id))
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        return bool(result.rowcount)


__all__ = ["NoteRepository", "UPDATABLE_FIELDS"]
