"""Turns committed note mutations into broadcast change events."""

from __future__ import annotations

import logging
from collections.abc import Callable

from notex.broadcast import BroadcastRegistry
from notex.models import ChangeEvent, ChangeType, NoteOut, NoteRef
from notex.utils.datetime import epoch_millis

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """Publishes one ``ChangeEvent`` per successful mutation.

    Must only be called after the storage layer committed the change and
    reported an affected row.
    """

    def __init__(self, registry: BroadcastRegistry, clock: Callable[[], int] = epoch_millis) -> None:
        self.registry = registry
        self.clock = clock

    def created(self, note: NoteOut) -> ChangeEvent:
        return self._emit("created", note)

    def updated(self, note: NoteOut) -> ChangeEvent:
        return self._emit("updated", note)

    def deleted(self, note_id: int) -> ChangeEvent:
        return self._emit("deleted", NoteRef(id=note_id))

    def _emit(self, change_type: ChangeType, note: NoteOut | NoteRef) -> ChangeEvent:
        event = ChangeEvent(type=change_type, note=note, timestamp=self.clock())
        delivered = self.registry.publish(event)
        logger.debug(
            "Change event published",
            extra={"event_type": change_type, "note_id": note.id, "deliveries": delivered},
        )
        return event


__all__ = ["ChangeNotifier"]
