"""SQLAlchemy implementation of the board repository port."""
from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from anonboard.core.errors import (
    BoardError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from anonboard.db.session import create_engine_for, create_session_factory, create_tables
from anonboard.models import BanRow, BoardRow, PostRow, ThreadRow
from anonboard.schemas import Ban, Board, Post, Thread, ThreadPreview

__all__ = ["SqlBoardRepository"]

logger = logging.getLogger(__name__)


def _to_board(row: BoardRow) -> Board:
    return Board(
        id=row.id,
        slug=row.slug,
        title=row.title,
        description=row.description,
        settings=dict(row.settings or {}),
        created_at=row.created_at,
    )


def _to_thread(row: ThreadRow) -> Thread:
    return Thread(
        id=row.id,
        board_id=row.board_id,
        last_bump=row.last_bump,
        is_sticky=row.is_sticky,
        is_locked=row.is_locked,
        metadata=dict(row.metadata_ or {}),
    )


def _to_post(row: PostRow) -> Post:
    return Post(
        id=row.id,
        thread_id=row.thread_id,
        user_id_in_thread=row.user_id_in_thread,
        content=row.content,
        media_id=row.media_id,
        is_op=row.is_op,
        created_at=row.created_at,
        metadata=dict(row.metadata_ or {}),
    )


def _to_ban(row: BanRow) -> Ban:
    return Ban(
        id=row.id,
        ip_address=row.ip_address,
        reason=row.reason,
        expires_at=row.expires_at,
        created_at=row.created_at,
    )


def _check_window(limit: int | None, offset: int) -> None:
    if limit is not None and limit < 0:
        raise ValidationError("limit must be non-negative")
    if offset < 0:
        raise ValidationError("offset must be non-negative")


class SqlBoardRepository:
    """Board repository over any SQLAlchemy async engine.

    Each call runs in its own session and transaction, so one instance is
    shared by all concurrent requests.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        """Initialize the repository with an async SQLAlchemy engine."""
        self.engine = engine
        self._sessions = create_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str, *, echo: bool = False) -> SqlBoardRepository:
        """Build a repository with a fresh engine for `database_url`."""
        return cls(create_engine_for(database_url, echo=echo))

    async def create_schema(self) -> None:
        """Create missing tables."""
        await create_tables(self.engine)

    async def dispose(self) -> None:
        """Close pooled connections."""
        await self.engine.dispose()

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """Yield a session inside a transaction, mapping driver errors.

        Leaving the block normally commits; any exception rolls back.
        """
        try:
            async with self._sessions() as session, session.begin():
                yield session
        except BoardError:
            raise
        except IntegrityError as exc:
            raise ConflictError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            logger.error("Database failure: %s", exc)
            raise InternalError(type(exc).__name__) from exc

    # Boards

    async def get_board(self, slug: str) -> Board | None:
        """Return a board by slug."""
        async with self._transaction() as session:
            result = await session.execute(select(BoardRow).where(BoardRow.slug == slug))
            row = result.scalars().first()
            return _to_board(row) if row is not None else None

    async def list_boards(self) -> list[Board]:
        """Return all boards sorted by slug."""
        async with self._transaction() as session:
            result = await session.execute(select(BoardRow).order_by(BoardRow.slug))
            return [_to_board(row) for row in result.scalars()]

    async def create_board(self, board: Board) -> None:
        """Provision a board; duplicate slugs raise `ConflictError`."""
        async with self._transaction() as session:
            existing = await session.execute(select(BoardRow.id).where(BoardRow.slug == board.slug))
            if existing.first() is not None:
                raise ConflictError(f"board /{board.slug}/ already exists")
            session.add(
                BoardRow(
                    id=board.id,
                    slug=board.slug,
                    title=board.title,
                    description=board.description,
                    settings=dict(board.settings),
                    created_at=board.created_at,
                )
            )

    # Threads and posts

    async def _insert_post(self, session: AsyncSession, post: Post) -> None:
        session.add(
            PostRow(
                id=post.id,
                thread_id=post.thread_id,
                user_id_in_thread=post.user_id_in_thread,
                content=post.content,
                media_id=post.media_id,
                is_op=post.is_op,
                created_at=post.created_at,
                metadata_=dict(post.metadata),
            )
        )
        await session.flush()

    async def create_thread(self, thread: Thread, op_post: Post) -> None:
        """Insert a thread together with its OP post.

        Both rows are written in one transaction: a failure on the post
        insert rolls the thread back, so no thread is ever visible without
        its OP.

        Raises:
            ValidationError: If the post is not an OP of this thread.
            NotFoundError: If the thread's board does not exist.
        """
        if op_post.thread_id != thread.id:
            raise ValidationError("OP post does not belong to the new thread")
        if not op_post.is_op:
            raise ValidationError("first post of a thread must be flagged as OP")

        async with self._transaction() as session:
            if await session.get(BoardRow, thread.board_id) is None:
                raise NotFoundError("board", thread.board_id)
            session.add(
                ThreadRow(
                    id=thread.id,
                    board_id=thread.board_id,
                    last_bump=thread.last_bump,
                    is_sticky=thread.is_sticky,
                    is_locked=thread.is_locked,
                    metadata_=dict(thread.metadata),
                )
            )
            await session.flush()
            await self._insert_post(session, op_post)

    async def create_post(self, post: Post) -> None:
        """Append a reply and bump the parent thread.

        Raises:
            ValidationError: If the post is flagged as OP.
            NotFoundError: If the parent thread does not exist.
            ConflictError: If the parent thread is locked.
        """
        if post.is_op:
            raise ValidationError("replies cannot be flagged as OP")

        async with self._transaction() as session:
            thread = await session.get(ThreadRow, post.thread_id, with_for_update=True)
            if thread is None:
                raise NotFoundError("thread", post.thread_id)
            if thread.is_locked:
                raise ConflictError(f"thread {post.thread_id} is locked")
            await self._insert_post(session, post)
            if post.created_at > thread.last_bump:
                thread.last_bump = post.created_at

    async def find_thread(self, thread_id: uuid.UUID) -> Thread | None:
        """Return the thread header without its posts."""
        async with self._transaction() as session:
            row = await session.get(ThreadRow, thread_id)
            return _to_thread(row) if row is not None else None

    async def get_thread(self, thread_id: uuid.UUID) -> tuple[Thread, list[Post]] | None:
        """Return a thread and its posts, oldest first."""
        async with self._transaction() as session:
            row = await session.get(ThreadRow, thread_id)
            if row is None:
                return None
            result = await session.execute(
                select(PostRow)
                .where(PostRow.thread_id == thread_id)
                .order_by(PostRow.created_at.asc(), PostRow.id.asc())
            )
            return _to_thread(row), [_to_post(post) for post in result.scalars()]

    async def list_threads_paginated(
        self, board_id: uuid.UUID, limit: int, offset: int
    ) -> list[Thread]:
        """Return a window of threads, stickies first, then most recently bumped."""
        _check_window(limit, offset)
        async with self._transaction() as session:
            result = await session.execute(
                select(ThreadRow)
                .where(ThreadRow.board_id == board_id)
                .order_by(
                    ThreadRow.is_sticky.desc(),
                    ThreadRow.last_bump.desc(),
                    ThreadRow.id.desc(),
                )
                .limit(limit)
                .offset(offset)
            )
            return [_to_thread(row) for row in result.scalars()]

    async def threads_with_op(
        self, board_id: uuid.UUID, limit: int | None = None, offset: int = 0
    ) -> list[ThreadPreview]:
        """Return threads joined with their OP posts in listing order."""
        _check_window(limit, offset)
        stmt = (
            select(ThreadRow, PostRow)
            .join(PostRow, (PostRow.thread_id == ThreadRow.id) & PostRow.is_op.is_(True))
            .where(ThreadRow.board_id == board_id)
            .order_by(
                ThreadRow.is_sticky.desc(),
                ThreadRow.last_bump.desc(),
                ThreadRow.id.desc(),
            )
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        async with self._transaction() as session:
            result = await session.execute(stmt)
            return [
                ThreadPreview(thread=_to_thread(thread), op=_to_post(op))
                for thread, op in result.all()
            ]

    async def count_threads(self, board_id: uuid.UUID) -> int:
        """Return the number of threads on a board."""
        async with self._transaction() as session:
            result = await session.execute(
                select(func.count()).select_from(ThreadRow).where(ThreadRow.board_id == board_id)
            )
            return int(result.scalar_one())

    async def reply_counts(self, thread_ids: Sequence[uuid.UUID]) -> dict[uuid.UUID, int]:
        """Return the number of non-OP posts per thread."""
        counts = {thread_id: 0 for thread_id in thread_ids}
        if not counts:
            return counts
        async with self._transaction() as session:
            result = await session.execute(
                select(PostRow.thread_id, func.count())
                .where(PostRow.thread_id.in_(list(counts)), PostRow.is_op.is_(False))
                .group_by(PostRow.thread_id)
            )
            for thread_id, count in result.all():
                counts[thread_id] = int(count)
        return counts

    # Bans

    async def add_ban(self, ban: Ban) -> None:
        """Record a ban."""
        async with self._transaction() as session:
            session.add(
                BanRow(
                    id=ban.id,
                    ip_address=ban.ip_address,
                    reason=ban.reason,
                    expires_at=ban.expires_at,
                    created_at=ban.created_at,
                )
            )

    async def list_active_bans(self, now: datetime) -> list[Ban]:
        """Return bans that are permanent or expire after `now`."""
        async with self._transaction() as session:
            result = await session.execute(
                select(BanRow).where(or_(BanRow.expires_at.is_(None), BanRow.expires_at > now))
            )
            return [_to_ban(row) for row in result.scalars()]
