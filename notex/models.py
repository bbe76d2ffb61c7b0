"""Pydantic models used by FastAPI routes and the change stream."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from notex.utils.datetime import ensure_utc

ChangeType = Literal["created", "updated", "deleted"]

DEFAULT_BG_COLOR = "#ffffff"

# SSE event name carried by every change frame
EVENT_NAME = "noteChange"


class NoteCreate(BaseModel):
    # name stays optional here so a missing name is reported as our own
    # validation error rather than FastAPI's 422
    name: str | None = Field(None, description="Note title; required and non-blank")
    description: str | None = Field(None, description="Rich-text body")
    bg_color: str | None = Field(None, description="Background color, hex")


class NoteUpdate(BaseModel):
    """Partial update; omitted or null fields keep their stored value."""

    name: str | None = None
    description: str | None = None
    bg_color: str | None = None


class NoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    bg_color: str
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class NoteRef(BaseModel):
    """Id-only stub carried by ``deleted`` events."""

    id: int


class DeleteResult(BaseModel):
    message: str = "Note deleted"


class ChangeEvent(BaseModel):
    type: ChangeType
    note: NoteOut | NoteRef
    timestamp: int = Field(..., description="Emission time, milliseconds since the epoch")


__all__ = [
    "ChangeType",
    "DEFAULT_BG_COLOR",
    "EVENT_NAME",
    "NoteCreate",
    "NoteUpdate",
    "NoteOut",
    "NoteRef",
    "DeleteResult",
    "ChangeEvent",
]
