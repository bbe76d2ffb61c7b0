"""Incremental parser for the text/event-stream wire format."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class SSEMessage:
    event: str
    data: str
    id: str | None = None


class SSEParser:
    """Feed lines, collect messages.

    Comment lines (leading ``:``) are dropped, so keep-alives never surface.
    A blank line dispatches the pending message; blocks without ``data`` are
    discarded, matching what browsers do.
    """

    def __init__(self) -> None:
        self._event = ""
        self._data: list[str] = []
        self._id: str | None = None

    def feed(self, line: str) -> SSEMessage | None:
        line = line.rstrip("\r\n")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            self._id = value
        return None

    def _dispatch(self) -> SSEMessage | None:
        if not self._data:
            self._event = ""
            return None
        message = SSEMessage(event=self._event or "message", data="\n".join(self._data), id=self._id)
        self._event = ""
        self._data = []
        return message


def parse_lines(lines: Iterable[str]) -> Iterator[SSEMessage]:
    parser = SSEParser()
    for line in lines:
        message = parser.feed(line)
        if message is not None:
            yield message


async def aparse_lines(lines: AsyncIterable[str]) -> AsyncIterator[SSEMessage]:
    parser = SSEParser()
    async for line in lines:
        message = parser.feed(line)
        if message is not None:
            yield message


__all__ = ["SSEMessage", "SSEParser", "parse_lines", "aparse_lines"]
