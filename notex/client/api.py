"""Async HTTP client for the NoteX API."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from notex.models import EVENT_NAME
from notex.client.sse import aparse_lines
from notex.settings import settings

logger = logging.getLogger(__name__)


class NotesAPIError(RuntimeError):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


def _raise_for_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        message = response.json().get("error") or response.text
    except ValueError:
        message = response.text
    raise NotesAPIError(response.status_code, message)


class NotesClient:
    """Thin wrapper over the CRUD routes and the change stream.

    Pass an existing ``httpx.AsyncClient`` to share connection pools or to
    drive an in-process app through ``ASGITransport``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        http: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> NotesClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self.http.request(method, path, **kwargs)
        _raise_for_error(response)
        return response.json()

    async def fetch_notes(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/notes")

    async def get_note(self, note_id: int) -> dict[str, Any]:
        return await self._request("GET", f"/notes/{note_id}")

    async def create_note(self, note: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/notes", json=note)

    async def update_note(self, note_id: int, note: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PUT", f"/notes/{note_id}", json=note)

    async def delete_note(self, note_id: int) -> dict[str, Any]:
        return await self._request("DELETE", f"/notes/{note_id}")

    async def stream_changes(self, client_id: str | None = None) -> AsyncIterator[dict[str, Any]]:
        """Yield decoded change events until the server closes the stream."""
        params = {"client_id": client_id} if client_id else None
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        async with self.http.stream(
            "GET", "/notes/events", params=params, headers=headers, timeout=httpx.Timeout(None, connect=10.0)
        ) as response:
            if not response.is_success:
                await response.aread()
                _raise_for_error(response)
            async for message in aparse_lines(response.aiter_lines()):
                if message.event != EVENT_NAME:
                    continue
                try:
                    yield json.loads(message.data)
                except json.JSONDecodeError:
                    logger.error("Failed to parse change event: %r", message.data)


__all__ = ["NotesClient", "NotesAPIError"]
