"""Client-side note list reconciliation.

The client keeps notes as plain JSON dicts exactly as the API returns them.
Server responses and pushed change events both go through ``apply_change``,
which is pure: it always returns a new list and never touches its input.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from notex.utils.datetime import ensure_utc

NoteDict = dict[str, Any]


def _to_epoch_seconds(value: Any) -> float:
    """Seconds since the epoch for an ISO string, ``datetime`` or number.

    Numbers are epoch milliseconds, the unit ``ChangeEvent.timestamp`` uses.
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, int | float):
        return value / 1000.0
    if isinstance(value, datetime):
        return ensure_utc(value).timestamp()
    if isinstance(value, str):
        try:
            return ensure_utc(datetime.fromisoformat(value)).timestamp()
        except ValueError:
            return 0.0
    return 0.0


def effective_timestamp(note: Mapping[str, Any]) -> float:
    """``updated_at`` if set, else ``created_at``, else the epoch; in seconds."""
    return _to_epoch_seconds(note.get("updated_at") or note.get("created_at"))


def sort_notes_by_latest(notes: Sequence[Mapping[str, Any]]) -> list[NoteDict]:
    """Newest first; notes with equal timestamps keep their relative order."""
    return sorted((dict(note) for note in notes), key=effective_timestamp, reverse=True)


def _index_of(notes: Sequence[Mapping[str, Any]], note_id: Any) -> int:
    for idx, note in enumerate(notes):
        if note.get("id") == note_id:
            return idx
    return -1


def apply_change(notes: Sequence[Mapping[str, Any]], change: Mapping[str, Any]) -> list[NoteDict]:
    """Merge one change event into *notes*.

    ``created`` is ignored when the id is already present, which absorbs the
    echo of a change this client already applied locally. ``updated``
    replaces by id, or appends an unknown note. ``deleted`` drops the id
    without re-sorting. After a create or update the list is re-sorted
    newest first.
    """
    change_type = change.get("type")
    note = change.get("note") or {}
    note_id = note.get("id")
    current = [dict(item) for item in notes]

    if note_id is None:
        return current

    if change_type == "deleted":
        return [item for item in current if item.get("id") != note_id]

    if change_type == "created":
        if _index_of(current, note_id) == -1:
            current.append(dict(note))
    elif change_type == "updated":
        idx = _index_of(current, note_id)
        if idx == -1:
            current.append(dict(note))
        else:
            current[idx] = dict(note)
    else:
        return current

    return sort_notes_by_latest(current)


__all__ = ["apply_change", "effective_timestamp", "sort_notes_by_latest", "NoteDict"]
