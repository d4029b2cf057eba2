"""Post ingestion pipeline.

Turns one form submission into a stored post:

    read fields -> ban check -> media -> board -> thread selection
        -> identity -> sanitize -> persist -> redirect

Each step either advances or raises a `BoardError`; nothing is caught and
continued. The ban check precedes every write, and a new thread is stored
together with its OP in a single repository call.
"""

from __future__ import annotations

import html
import logging
import uuid
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from anonboard.core.errors import InternalError, MediaError, NotFoundError, UnauthorizedError, ValidationError
from anonboard.core.security import split_name_and_password
from anonboard.core.settings import DEFAULT_MAX_UPLOAD_BYTES
from anonboard.db.time import utcnow
from anonboard.schemas import Board, Post, Thread, new_id
from anonboard.services.multipart import FormField
from anonboard.services.ports import Ports
from anonboard.services.sanitizer import sanitize

logger = logging.getLogger(__name__)

MAX_TEXT_FIELD_BYTES = 64 * 1024
MAX_THREAD_ID_BYTES = 64


@dataclass(frozen=True)
class Submission:
    """Request metadata supplied by the HTTP layer."""

    client_addr: str
    board_slug: str


@dataclass(frozen=True)
class IngestionResult:
    """Outcome of a successful submission."""

    redirect_to: str
    thread_id: uuid.UUID
    post_id: uuid.UUID
    media_id: str | None
    created_thread: bool


@dataclass
class _Draft:
    content: str = ""
    name: str = ""
    thread_id: uuid.UUID | None = None
    file_data: bytes = b""
    file_content_type: str = ""


class _BoardLookup:
    """Fetch a board at most once per submission."""

    def __init__(self, ports: Ports, slug: str) -> None:
        self._ports = ports
        self._slug = slug
        self._loaded = False
        self._board: Board | None = None

    async def get(self) -> Board | None:
        if not self._loaded:
            self._board = await self._ports.repository.get_board(self._slug)
            self._loaded = True
        return self._board


async def _read_limited(form_field: FormField, limit: int, what: str) -> bytes:
    buffer = bytearray()
    async for chunk in form_field:
        buffer += chunk
        if len(buffer) > limit:
            raise ValidationError(f"{what} exceeds {limit} bytes")
    return bytes(buffer)


def _parse_thread_id(raw: bytes) -> uuid.UUID | None:
    text = raw.decode("utf-8", errors="ignore").strip()
    if not text:
        return None
    try:
        return uuid.UUID(text)
    except ValueError:
        return None


class PostIngestionPipeline:
    """Orchestrates the ports to store one post per `ingest` call.

    Args:
        ports: Repository, media store and identity provider.
        max_upload_bytes: Upload cap for boards without `max_file_size`.
        now: Clock used for `created_at` and `last_bump`.
    """

    def __init__(
        self,
        ports: Ports,
        *,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ports = ports
        self.max_upload_bytes = max_upload_bytes
        self._now = now

    async def _read_fields(
        self, fields: AsyncIterable[FormField], boards: _BoardLookup
    ) -> _Draft:
        draft = _Draft()
        async for form_field in fields:
            if form_field.name == "content":
                data = await _read_limited(form_field, MAX_TEXT_FIELD_BYTES, "content")
                draft.content = data.decode("utf-8", errors="ignore")
            elif form_field.name == "name":
                data = await _read_limited(form_field, MAX_TEXT_FIELD_BYTES, "name")
                draft.name = data.decode("utf-8", errors="ignore")
            elif form_field.name == "thread_id":
                try:
                    data = await _read_limited(form_field, MAX_THREAD_ID_BYTES, "thread_id")
                except ValidationError:
                    await form_field.drain()
                    data = b""
                draft.thread_id = _parse_thread_id(data)
            elif form_field.name == "file":
                board = await boards.get()
                limit = (board.max_file_size if board is not None else None) or self.max_upload_bytes
                draft.file_data = await _read_limited(form_field, limit, "upload")
                draft.file_content_type = form_field.content_type
            else:
                await form_field.drain()
        return draft

    def _name_metadata(self, raw_name: str) -> dict[str, Any]:
        name, password = split_name_and_password(raw_name)
        metadata: dict[str, Any] = {}
        if name:
            metadata["name"] = html.escape(name, quote=True)
        if password is not None:
            metadata["tripcode"] = self.ports.identity.tripcode(password)
        return metadata

    async def _select_thread(self, board: Board, requested: uuid.UUID | None) -> tuple[uuid.UUID, bool]:
        """Return `(thread_id, is_new)` for the submission."""
        if requested is not None:
            thread = await self.ports.repository.find_thread(requested)
            if thread is not None and thread.board_id == board.id:
                return thread.id, False
            logger.debug("Thread %s not on /%s/; starting a new thread", requested, board.slug)
        return new_id(), True

    async def ingest(self, submission: Submission, fields: AsyncIterable[FormField]) -> IngestionResult:
        """Store the submission and return where to redirect the client.

        Raises:
            ValidationError: Oversized or malformed fields.
            UnauthorizedError: The client address is banned.
            NotFoundError: Unknown board, or the reply target vanished.
            ConflictError: The reply target is locked.
            InternalError: Media or database failure.
        """
        boards = _BoardLookup(self.ports, submission.board_slug)
        draft = await self._read_fields(fields, boards)

        if await self.ports.identity.is_banned(submission.client_addr):
            logger.info("Rejected post to /%s/: client is banned", submission.board_slug)
            raise UnauthorizedError("client address is banned")

        media_id = None
        if draft.file_data:
            try:
                media_id = await self.ports.media.save(draft.file_data, draft.file_content_type)
            except MediaError as exc:
                logger.warning("Upload to /%s/ rejected by media store: %s", submission.board_slug, exc)
                raise InternalError(f"media store failed ({exc.code.value})") from exc

        board = await boards.get()
        if board is None:
            raise NotFoundError("board", submission.board_slug)

        thread_id, is_new = await self._select_thread(board, draft.thread_id)
        user_id = self.ports.identity.thread_id_for(submission.client_addr, str(thread_id))
        now = self._now()
        post = Post(
            id=new_id(),
            thread_id=thread_id,
            user_id_in_thread=user_id,
            content=sanitize(draft.content),
            media_id=media_id,
            is_op=is_new,
            created_at=now,
            metadata=self._name_metadata(draft.name),
        )

        if is_new:
            thread = Thread(id=thread_id, board_id=board.id, last_bump=now)
            await self.ports.repository.create_thread(thread, post)
        else:
            await self.ports.repository.create_post(post)

        logger.info(
            "Stored %s %s in /%s/ thread %s (media %s)",
            "thread" if is_new else "reply",
            post.id,
            board.slug,
            thread_id,
            media_id or "none",
        )
        return IngestionResult(
            redirect_to=f"/{board.slug}/thread/{thread_id}",
            thread_id=thread_id,
            post_id=post.id,
            media_id=media_id,
            created_thread=is_new,
        )
