"""Error taxonomy shared by the service, the broadcast registry and the API."""

from __future__ import annotations

from typing import Any


class NoteError(Exception):
    """Base class for failures reported to API callers."""

    status_code = 500

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(NoteError):
    """A required field is missing or a value is malformed."""

    status_code = 400


class NotFoundError(NoteError):
    """The targeted note does not exist."""

    status_code = 404

    def __init__(self, message: str = "Note not found", details: str | None = None) -> None:
        super().__init__(message, details)


class PersistenceError(NoteError):
    """The storage layer failed unexpectedly."""

    status_code = 500


class DeliveryError(Exception):
    """A frame could not be handed to one subscriber.

    Raised and handled inside the broadcast registry only; never surfaces to
    request handlers.
    """

    def __init__(self, subscriber_id: str, reason: str) -> None:
        super().__init__(f"delivery to {subscriber_id} failed: {reason}")
        self.subscriber_id = subscriber_id
        self.reason = reason


__all__ = ["NoteError", "ValidationError", "NotFoundError", "PersistenceError", "DeliveryError"]
