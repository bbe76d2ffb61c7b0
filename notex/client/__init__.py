"""Python client for the NoteX API and its change stream."""

from .api import NotesAPIError, NotesClient
from .live import LiveNotes, Notification
from .store import apply_change, effective_timestamp, sort_notes_by_latest

__all__ = [
    "NotesAPIError",
    "NotesClient",
    "LiveNotes",
    "Notification",
    "apply_change",
    "effective_timestamp",
    "sort_notes_by_latest",
]
