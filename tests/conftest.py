# tests/conftest.py
from __future__ import annotations

import io
import uuid
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime, timedelta

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from PIL import Image

from anonboard.core.settings import Settings
from anonboard.db.time import utcnow
from anonboard.repositories import InMemoryBoardRepository, SqlBoardRepository
from anonboard.schemas import Board, Post, Thread, new_id
from anonboard.services.identity import SimpleIdentityProvider
from anonboard.services.media import LocalMediaStore
from anonboard.services.multipart import FormField
from anonboard.services.ports import Ports

TEST_DB_URL = "sqlite+aiosqlite://"
TEST_SECRET = b"test-session-secret"
MULTIPART_BOUNDARY = "----anonboard-test-boundary"


@pytest.fixture()
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        UPLOAD_ROOT=str(tmp_path / "uploads"),
        STATIC_ROOT=str(tmp_path / "static"),
        DATABASE_URL=TEST_DB_URL,
        SESSION_SECRET=TEST_SECRET.decode(),
        BAN_CACHE_SECONDS=0,
    )


@pytest.fixture()
async def repository() -> AsyncIterator[SqlBoardRepository]:
    repo = SqlBoardRepository.from_url(TEST_DB_URL)
    await repo.create_schema()
    try:
        yield repo
    finally:
        await repo.dispose()


@pytest.fixture()
def memory_repository() -> InMemoryBoardRepository:
    return InMemoryBoardRepository()


@pytest.fixture(params=["sql", "memory"])
async def any_repository(request) -> AsyncIterator[SqlBoardRepository | InMemoryBoardRepository]:
    """Every repository implementation, for contract tests."""
    if request.param == "memory":
        yield InMemoryBoardRepository()
        return
    repo = SqlBoardRepository.from_url(TEST_DB_URL)
    await repo.create_schema()
    try:
        yield repo
    finally:
        await repo.dispose()


@pytest.fixture()
def media_store(test_settings: Settings) -> LocalMediaStore:
    return LocalMediaStore(test_settings.upload_root, test_settings.upload_url_prefix)


@pytest.fixture()
def identity(repository: SqlBoardRepository) -> SimpleIdentityProvider:
    return SimpleIdentityProvider(TEST_SECRET, repository, cache_seconds=0)


@pytest.fixture()
def ports(repository, media_store, identity) -> Ports:
    return Ports(repository=repository, media=media_store, identity=identity)


@pytest.fixture()
async def board(repository: SqlBoardRepository) -> Board:
    board = Board(slug="b", title="Random")
    await repository.create_board(board)
    return board


@pytest.fixture()
def app(ports: Ports, test_settings: Settings) -> FastAPI:
    from anonboard.main import create_app

    return create_app(ports, test_settings)


@pytest.fixture()
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as http_client:
        yield http_client


@pytest.fixture()
def png_bytes() -> Callable[..., bytes]:
    """Return a factory for small PNG images."""

    def make(size: tuple[int, int] = (2, 2), color: tuple[int, int, int] = (255, 0, 0)) -> bytes:
        buffer = io.BytesIO()
        Image.new("RGB", size, color).save(buffer, format="PNG")
        return buffer.getvalue()

    return make


@pytest.fixture()
def multipart_body() -> Callable[..., tuple[bytes, str]]:
    """Return an encoder for multipart/form-data request bodies.

    Each part is `(name, value)` or `(name, value, filename, content_type)`.
    """

    def encode(*parts: tuple) -> tuple[bytes, str]:
        chunks: list[bytes] = []
        for part in parts:
            name, value = part[0], part[1]
            filename = part[2] if len(part) > 2 else None
            content_type = part[3] if len(part) > 3 else None
            disposition = f'form-data; name="{name}"'
            if filename is not None:
                disposition += f'; filename="{filename}"'
            chunks.append(f"--{MULTIPART_BOUNDARY}\r\n".encode())
            chunks.append(f"Content-Disposition: {disposition}\r\n".encode())
            if content_type is not None:
                chunks.append(f"Content-Type: {content_type}\r\n".encode())
            chunks.append(b"\r\n")
            chunks.append(value if isinstance(value, bytes) else value.encode("utf-8"))
            chunks.append(b"\r\n")
        chunks.append(f"--{MULTIPART_BOUNDARY}--\r\n".encode())
        return b"".join(chunks), f"multipart/form-data; boundary={MULTIPART_BOUNDARY}"

    return encode


async def form_fields(*parts: tuple) -> AsyncIterator[FormField]:
    """Yield in-memory form fields: `(name, value)` or `(name, value, content_type)`."""
    for part in parts:
        name, value = part[0], part[1]
        content_type = part[2] if len(part) > 2 else ""
        data = value if isinstance(value, bytes) else value.encode("utf-8")

        async def chunks(data: bytes = data) -> AsyncIterator[bytes]:
            for start in range(0, len(data), 7):
                yield data[start:start + 7]

        yield FormField(name=name, content_type=content_type, chunks=chunks())


def make_thread(board: Board, created_at: datetime | None = None) -> tuple[Thread, Post]:
    """Return a new thread and its OP post, both stamped `created_at`."""
    created_at = created_at or utcnow()
    thread_id = new_id()
    thread = Thread(id=thread_id, board_id=board.id, last_bump=created_at)
    op = Post(
        id=new_id(),
        thread_id=thread_id,
        user_id_in_thread="abcd1234",
        content="op",
        is_op=True,
        created_at=created_at,
    )
    return thread, op


def make_reply(thread_id: uuid.UUID, created_at: datetime) -> Post:
    return Post(
        id=new_id(),
        thread_id=thread_id,
        user_id_in_thread="ffff0000",
        content="reply",
        created_at=created_at,
    )


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        value = self.current
        self.current = value + timedelta(seconds=1)
        return value
