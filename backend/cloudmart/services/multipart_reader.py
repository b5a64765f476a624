"""
CloudMart Functions — Streaming Multipart Reader
=================================================

What:  Walks the sections of a multipart/form-data body one at a time,
       forward-only, without buffering whole sections.
How:   Request chunks are pushed into python-multipart's MultipartParser.
       Its callbacks append events (headers / data / part end / end) to a
       queue that the async reader drains on demand.

    reader = MultipartReader(boundary, request.stream())
    while (section := await reader.next_section()) is not None:
        if wanted(section):
            async for chunk in section.stream(): ...

Moving to the next section drains whatever is left of the current one, so
a large unwanted section costs its read time but no memory.

A body that runs out before the closing boundary is malformed: the reader
raises DecodeError instead of reporting a normal end, so a cut-off file
section is never handed on as complete.
"""

import logging
from collections import deque
from typing import AsyncIterator, Deque, Dict, Optional, Tuple

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from cloudmart.exceptions import DecodeError

logger = logging.getLogger(__name__)

# Parser event tags
_HEADERS = "headers"
_DATA = "data"
_PART_END = "part_end"
_END = "end"

MALFORMED_MULTIPART = "Malformed multipart body."


class MultipartSection:
    """One section of a multipart body: its headers plus a one-shot byte stream."""

    def __init__(self, reader: "MultipartReader", headers: Dict[str, str]):
        self._reader = reader
        self.headers = headers
        self.finished = False

    @property
    def content_disposition(self) -> Optional[str]:
        return self.headers.get("content-disposition")

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    def disposition(self) -> Tuple[str, Dict[str, str]]:
        """
        Parse Content-Disposition into (type, params).

        Returns ("", {}) when the header is missing. Parameter names are
        lower-cased; values are unquoted.
        """
        if not self.content_disposition:
            return "", {}
        disposition_type, params = parse_options_header(self.content_disposition)
        return (
            disposition_type.decode("latin-1"),
            {key.decode("latin-1"): value.decode("utf-8", errors="replace") for key, value in params.items()},
        )

    async def stream(self) -> AsyncIterator[bytes]:
        """Yield the section body chunk by chunk. Can be consumed once."""
        while not self.finished:
            tag, payload = await self._reader._next_event()
            if tag == _DATA:
                yield payload
            elif tag == _PART_END:
                self.finished = True
            else:
                # Parser ended without closing this section.
                self.finished = True
                self._reader._push_back(tag, payload)

    async def drain(self) -> None:
        async for _ in self.stream():
            pass


class MultipartReader:
    """Pull-style reader over a push parser."""

    def __init__(self, boundary: str, body: AsyncIterator[bytes]):
        self._body = body.__aiter__()
        self._events: Deque[Tuple[str, object]] = deque()
        self._body_exhausted = False
        self._closed = False
        self._current: Optional[MultipartSection] = None
        self._header_field = b""
        self._header_value = b""
        self._headers: Dict[str, str] = {}
        callbacks = {
            "on_part_begin": self._on_part_begin,
            "on_header_field": self._on_header_field,
            "on_header_value": self._on_header_value,
            "on_header_end": self._on_header_end,
            "on_headers_finished": self._on_headers_finished,
            "on_part_data": self._on_part_data,
            "on_part_end": self._on_part_end,
            "on_end": self._on_end,
        }
        self._parser = MultipartParser(boundary.encode("latin-1"), callbacks)

    # ── Parser callbacks ──────────────────────────────────────────────────

    def _on_part_begin(self) -> None:
        self._headers = {}
        self._header_field = b""
        self._header_value = b""

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        name = self._header_field.decode("latin-1").strip().lower()
        self._headers[name] = self._header_value.decode("latin-1").strip()
        self._header_field = b""
        self._header_value = b""

    def _on_headers_finished(self) -> None:
        self._events.append((_HEADERS, dict(self._headers)))

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if end > start:
            self._events.append((_DATA, bytes(data[start:end])))

    def _on_part_end(self) -> None:
        self._events.append((_PART_END, None))

    def _on_end(self) -> None:
        self._closed = True
        self._events.append((_END, None))

    # ── Event pump ────────────────────────────────────────────────────────

    def _push_back(self, tag: str, payload: object) -> None:
        self._events.appendleft((tag, payload))

    async def _next_event(self) -> Tuple[str, object]:
        while not self._events:
            if self._body_exhausted:
                if not self._closed:
                    logger.warning("Multipart body ended before the closing boundary")
                    raise DecodeError(
                        message=MALFORMED_MULTIPART,
                        context={"error": "missing closing boundary"},
                    )
                return _END, None
            try:
                chunk = await self._body.__anext__()
            except StopAsyncIteration:
                self._body_exhausted = True
                self._parser.finalize()
                continue
            if not chunk:
                continue
            try:
                self._parser.write(chunk)
            except MultipartParseError as exc:
                logger.warning("Multipart parse error: %s", exc)
                raise DecodeError(message=MALFORMED_MULTIPART, context={"error": str(exc)}) from exc
        return self._events.popleft()

    async def next_section(self) -> Optional[MultipartSection]:
        """Advance to the next section, or return None at the end of the body."""
        if self._current is not None and not self._current.finished:
            await self._current.drain()
        self._current = None

        while True:
            tag, payload = await self._next_event()
            if tag == _HEADERS:
                self._current = MultipartSection(self, payload)  # type: ignore[arg-type]
                return self._current
            if tag == _END:
                self._push_back(_END, None)
                return None
            # Stray data / part ends outside a section are skipped.
