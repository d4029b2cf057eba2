"""In-process implementation of the board repository port.

Useful for development and for exercising the pipeline without a database.
State lives for the lifetime of the instance.
"""
from __future__ import annotations

import asyncio
import uuid
from collections.abc import Sequence
from datetime import datetime

from anonboard.core.errors import ConflictError, NotFoundError, ValidationError
from anonboard.schemas import Ban, Board, Post, Thread, ThreadPreview

__all__ = ["InMemoryBoardRepository"]


def _listing_key(thread: Thread) -> tuple[bool, datetime, uuid.UUID]:
    return (thread.is_sticky, thread.last_bump, thread.id)


class InMemoryBoardRepository:
    """Dictionary-backed repository guarded by a single asyncio lock."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._boards: dict[uuid.UUID, Board] = {}
        self._threads: dict[uuid.UUID, Thread] = {}
        self._posts: dict[uuid.UUID, list[Post]] = {}
        self._bans: list[Ban] = []

    async def dispose(self) -> None:
        return None

    async def get_board(self, slug: str) -> Board | None:
        async with self._lock:
            for board in self._boards.values():
                if board.slug == slug:
                    return board.model_copy(deep=True)
            return None

    async def list_boards(self) -> list[Board]:
        async with self._lock:
            boards = sorted(self._boards.values(), key=lambda board: board.slug)
            return [board.model_copy(deep=True) for board in boards]

    async def create_board(self, board: Board) -> None:
        async with self._lock:
            if any(existing.slug == board.slug for existing in self._boards.values()):
                raise ConflictError(f"board /{board.slug}/ already exists")
            if board.id in self._boards:
                raise ConflictError(f"board {board.id} already exists")
            self._boards[board.id] = board.model_copy(deep=True)

    async def create_thread(self, thread: Thread, op_post: Post) -> None:
        if op_post.thread_id != thread.id:
            raise ValidationError("OP post does not belong to the new thread")
        if not op_post.is_op:
            raise ValidationError("first post of a thread must be flagged as OP")
        async with self._lock:
            if thread.board_id not in self._boards:
                raise NotFoundError("board", thread.board_id)
            if thread.id in self._threads:
                raise ConflictError(f"thread {thread.id} already exists")
            # Both writes happen after every check, so there is nothing to undo.
            self._threads[thread.id] = thread.model_copy(deep=True)
            self._posts[thread.id] = [op_post.model_copy(deep=True)]

    async def create_post(self, post: Post) -> None:
        if post.is_op:
            raise ValidationError("replies cannot be flagged as OP")
        async with self._lock:
            thread = self._threads.get(post.thread_id)
            if thread is None:
                raise NotFoundError("thread", post.thread_id)
            if thread.is_locked:
                raise ConflictError(f"thread {post.thread_id} is locked")
            posts = self._posts[post.thread_id]
            if any(existing.id == post.id for existing in posts):
                raise ConflictError(f"post {post.id} already exists")
            posts.append(post.model_copy(deep=True))
            if post.created_at > thread.last_bump:
                thread.last_bump = post.created_at

    async def find_thread(self, thread_id: uuid.UUID) -> Thread | None:
        async with self._lock:
            thread = self._threads.get(thread_id)
            return thread.model_copy(deep=True) if thread is not None else None

    async def get_thread(self, thread_id: uuid.UUID) -> tuple[Thread, list[Post]] | None:
        async with self._lock:
            thread = self._threads.get(thread_id)
            if thread is None:
                return None
            posts = sorted(self._posts[thread_id], key=lambda post: (post.created_at, post.id))
            return thread.model_copy(deep=True), [post.model_copy(deep=True) for post in posts]

    def _ordered_threads(self, board_id: uuid.UUID) -> list[Thread]:
        threads = [thread for thread in self._threads.values() if thread.board_id == board_id]
        return sorted(threads, key=_listing_key, reverse=True)

    async def list_threads_paginated(
        self, board_id: uuid.UUID, limit: int, offset: int
    ) -> list[Thread]:
        if limit < 0 or offset < 0:
            raise ValidationError("limit and offset must be non-negative")
        async with self._lock:
            window = self._ordered_threads(board_id)[offset:offset + limit]
            return [thread.model_copy(deep=True) for thread in window]

    async def threads_with_op(
        self, board_id: uuid.UUID, limit: int | None = None, offset: int = 0
    ) -> list[ThreadPreview]:
        if (limit is not None and limit < 0) or offset < 0:
            raise ValidationError("limit and offset must be non-negative")
        async with self._lock:
            threads = self._ordered_threads(board_id)
            end = None if limit is None else offset + limit
            previews = []
            for thread in threads[offset:end]:
                op = next(post for post in self._posts[thread.id] if post.is_op)
                previews.append(
                    ThreadPreview(thread=thread.model_copy(deep=True), op=op.model_copy(deep=True))
                )
            return previews

    async def count_threads(self, board_id: uuid.UUID) -> int:
        async with self._lock:
            return sum(1 for thread in self._threads.values() if thread.board_id == board_id)

    async def reply_counts(self, thread_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, int]:
        async with self._lock:
            return {
                thread_id: sum(1 for post in self._posts.get(thread_id, []) if not post.is_op)
                for thread_id in thread_ids
            }

    async def add_ban(self, ban: Ban) -> None:
        async with self._lock:
            self._bans.append(ban.model_copy(deep=True))

    async def list_active_bans(self, now: datetime) -> list[Ban]:
        async with self._lock:
            return [ban.model_copy(deep=True) for ban in self._bans if ban.is_active(now)]
