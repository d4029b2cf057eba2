"""Port contracts the ingestion pipeline and the HTTP layer depend on.

Concrete backends are selected in `anonboard.services.assembly`; nothing in
the pipeline knows which implementation is behind a port.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

from anonboard.schemas import Ban, Board, Post, Thread, ThreadPreview


@runtime_checkable
class BoardRepository(Protocol):
    """Persistence port over boards, threads, posts and bans.

    Every method may raise `NotFoundError`, `ValidationError`,
    `ConflictError` or `InternalError`.
    """

    async def get_board(self, slug: str) -> Board | None: ...

    async def list_boards(self) -> list[Board]: ...

    async def create_board(self, board: Board) -> None: ...

    async def create_thread(self, thread: Thread, op_post: Post) -> None:
        """Insert thread and OP together or not at all."""
        ...

    async def create_post(self, post: Post) -> None:
        """Append a reply and bump its thread."""
        ...

    async def find_thread(self, thread_id: uuid.UUID) -> Thread | None: ...

    async def get_thread(self, thread_id: uuid.UUID) -> tuple[Thread, list[Post]] | None: ...

    async def list_threads_paginated(
        self, board_id: uuid.UUID, limit: int, offset: int
    ) -> list[Thread]: ...

    async def threads_with_op(
        self, board_id: uuid.UUID, limit: int | None = None, offset: int = 0
    ) -> list[ThreadPreview]: ...

    async def count_threads(self, board_id: uuid.UUID) -> int: ...

    async def reply_counts(self, thread_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, int]: ...

    async def add_ban(self, ban: Ban) -> None: ...

    async def list_active_bans(self, now: datetime) -> list[Ban]: ...

    async def dispose(self) -> None: ...


class BanSource(Protocol):
    """Where the identity provider reads the current ban set from."""

    async def list_active_bans(self, now: datetime) -> list[Ban]: ...


@runtime_checkable
class MediaStore(Protocol):
    """Content-addressed blob store with thumbnail derivation."""

    async def save(self, data: bytes, declared_content_type: str) -> str:
        """Store `data` and return its lowercase hex SHA-256."""
        ...

    def url_of(self, media_id: str) -> str: ...

    def thumbnail_url_of(self, media_id: str) -> str: ...


@runtime_checkable
class IdentityProvider(Protocol):
    """Pseudonymous identities, tripcodes, staff auth and bans."""

    def thread_id_for(self, client_addr: str, thread_id: str) -> str: ...

    def tripcode(self, password: str) -> str: ...

    def verify_moderator(self, password: str, stored_hash: str) -> bool: ...

    async def is_banned(self, client_addr: str) -> bool: ...


@dataclass(frozen=True)
class Ports:
    """The capability set shared by every request handler."""

    repository: BoardRepository
    media: MediaStore
    identity: IdentityProvider

    async def dispose(self) -> None:
        """Release resources held by the backends."""
        await self.repository.dispose()
