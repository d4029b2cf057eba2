"""Lazy `multipart/form-data` reader.

The request body is fed to python-multipart's push parser one network chunk
at a time. Fields are handed out in order of arrival, each as an async
iterable of byte chunks, so nothing beyond the current chunk is held in
memory unless the consumer chooses to buffer it.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass, field

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from anonboard.core.errors import ValidationError

logger = logging.getLogger(__name__)

MAX_PART_HEADER_BYTES = 16 * 1024

_HEADER = "header"
_HEADERS_DONE = "headers_done"
_DATA = "data"
_PART_END = "part_end"
_END = "end"


@dataclass
class FormField:
    """One form field: its name, declared content type and body chunks."""

    name: str
    content_type: str
    chunks: AsyncIterable[bytes] = field(repr=False)
    filename: str | None = None

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.chunks.__aiter__()

    async def drain(self) -> None:
        """Consume and discard whatever is left of the field."""
        async for _ in self:
            pass


class MultipartFieldStream:
    """Async iterator of `FormField`s read lazily from a request body.

    Advancing to the next field discards any unread remainder of the
    current one.
    """

    def __init__(self, body: AsyncIterable[bytes], boundary: bytes) -> None:
        self._body = body.__aiter__()
        self._events: deque[tuple[str, bytes, bytes]] = deque()
        self._header_name = bytearray()
        self._header_value = bytearray()
        self._header_bytes = 0
        self._body_done = False
        self._ended = False
        self._part_index = 0
        self._in_part = False
        self._parser = MultipartParser(
            boundary,
            callbacks={
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_end": self._on_end,
            },
        )

    # Parser callbacks

    def _check_header_size(self, size: int) -> None:
        self._header_bytes += size
        if self._header_bytes > MAX_PART_HEADER_BYTES:
            raise ValidationError("multipart part headers are too large")

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._check_header_size(end - start)
        self._header_name += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._check_header_size(end - start)
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        self._events.append((_HEADER, bytes(self._header_name), bytes(self._header_value)))
        self._header_name.clear()
        self._header_value.clear()

    def _on_headers_finished(self) -> None:
        self._header_bytes = 0
        self._events.append((_HEADERS_DONE, b"", b""))

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if end > start:
            self._events.append((_DATA, bytes(data[start:end]), b""))

    def _on_part_end(self) -> None:
        self._events.append((_PART_END, b"", b""))

    def _on_end(self) -> None:
        self._events.append((_END, b"", b""))

    # Event pump

    async def _next_event(self) -> tuple[str, bytes, bytes]:
        while not self._events:
            if self._body_done:
                return (_END, b"", b"")
            try:
                chunk = await self._body.__anext__()
            except StopAsyncIteration:
                self._body_done = True
                self._parser.finalize()
                continue
            if not chunk:
                continue
            try:
                self._parser.write(chunk)
            except MultipartParseError as exc:
                raise ValidationError(f"malformed multipart body: {exc}") from exc
        return self._events.popleft()

    async def _read_chunk(self) -> bytes | None:
        if not self._in_part:
            return None
        kind, data, _ = await self._next_event()
        if kind == _DATA:
            return data
        if kind == _PART_END:
            self._in_part = False
            return None
        raise ValidationError("multipart body ended inside a part")

    async def _part_chunks(self, index: int) -> AsyncIterator[bytes]:
        while self._part_index == index:
            chunk = await self._read_chunk()
            if chunk is None:
                return
            yield chunk

    async def _skip_current(self) -> None:
        while await self._read_chunk() is not None:
            pass

    # Public iteration

    def __aiter__(self) -> MultipartFieldStream:
        return self

    async def __anext__(self) -> FormField:
        await self._skip_current()
        if self._ended:
            raise StopAsyncIteration

        headers: dict[str, str] = {}
        while True:
            kind, key, value = await self._next_event()
            if kind == _HEADER:
                headers[key.decode("latin-1").strip().lower()] = value.decode("latin-1").strip()
            elif kind == _HEADERS_DONE:
                break
            elif kind == _END:
                if headers:
                    raise ValidationError("multipart body ended inside part headers")
                self._ended = True
                raise StopAsyncIteration

        _, params = parse_options_header(headers.get("content-disposition", ""))
        raw_name = params.get(b"name")
        if raw_name is None:
            raise ValidationError("multipart part has no field name")
        raw_filename = params.get(b"filename")

        self._part_index += 1
        self._in_part = True
        form_field = FormField(
            name=raw_name.decode("utf-8", errors="replace"),
            content_type=headers.get("content-type", ""),
            chunks=self._part_chunks(self._part_index),
            filename=raw_filename.decode("utf-8", errors="replace") if raw_filename is not None else None,
        )
        logger.debug("Reading form field %r (%s)", form_field.name, form_field.content_type or "no type")
        return form_field


def read_form_fields(content_type: str | None, body: AsyncIterable[bytes]) -> MultipartFieldStream:
    """Return a lazy field stream for a request body.

    Raises:
        ValidationError: If the content type is not multipart/form-data or
            carries no boundary.
    """
    media_type, params = parse_options_header(content_type or "")
    if media_type != b"multipart/form-data":
        raise ValidationError("expected a multipart/form-data body")
    boundary = params.get(b"boundary")
    if not boundary:
        raise ValidationError("multipart body has no boundary")
    return MultipartFieldStream(body, boundary)
