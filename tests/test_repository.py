"""Contract tests run against every board repository implementation."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from anonboard.core.errors import ConflictError, InternalError, NotFoundError, ValidationError
from anonboard.db.session import create_session_factory
from anonboard.db.time import utcnow
from anonboard.models import ThreadRow
from anonboard.schemas import Ban, Board, new_id

from conftest import make_reply, make_thread


@pytest.fixture()
async def repo_board(any_repository) -> Board:
    board = Board(slug="g", title="Technology", settings={"max_file_size": 1024})
    await any_repository.create_board(board)
    return board


async def test_board_round_trip(any_repository, repo_board) -> None:
    """Boards come back with their settings bucket intact."""
    found = await any_repository.get_board("g")
    assert found is not None
    assert found.id == repo_board.id
    assert found.settings == {"max_file_size": 1024}
    assert found.max_file_size == 1024
    assert await any_repository.get_board("missing") is None


async def test_list_boards_sorted_by_slug(any_repository) -> None:
    for slug in ("z", "a", "m"):
        await any_repository.create_board(Board(slug=slug, title=slug.upper()))
    assert [board.slug for board in await any_repository.list_boards()] == ["a", "m", "z"]


async def test_duplicate_board_slug_conflicts(any_repository, repo_board) -> None:
    with pytest.raises(ConflictError):
        await any_repository.create_board(Board(slug="g", title="Again"))


async def test_create_thread_persists_thread_and_op(any_repository, repo_board) -> None:
    thread, op = make_thread(repo_board)
    await any_repository.create_thread(thread, op)

    found = await any_repository.get_thread(thread.id)
    assert found is not None
    stored_thread, posts = found
    assert stored_thread.id == thread.id
    assert [post.id for post in posts] == [op.id]
    assert posts[0].is_op


async def test_every_thread_has_exactly_one_earliest_op(any_repository, repo_board) -> None:
    """The OP is unique and is the oldest post of its thread."""
    start = utcnow()
    created = []
    for index in range(3):
        thread, op = make_thread(repo_board, start + timedelta(seconds=index))
        await any_repository.create_thread(thread, op)
        created.append(thread.id)
        for offset in range(1, 3):
            await any_repository.create_post(make_reply(thread.id, start + timedelta(seconds=index + offset * 10)))

    for thread_id in created:
        _, posts = await any_repository.get_thread(thread_id)
        ops = [post for post in posts if post.is_op]
        assert len(ops) == 1
        assert ops[0] == min(posts, key=lambda post: (post.created_at, post.id))


async def test_create_thread_rejects_foreign_op(any_repository, repo_board) -> None:
    thread, op = make_thread(repo_board)
    other_thread, _ = make_thread(repo_board)
    with pytest.raises(ValidationError):
        await any_repository.create_thread(other_thread, op)
    with pytest.raises(ValidationError):
        await any_repository.create_thread(thread, op.model_copy(update={"is_op": False}))
    assert await any_repository.find_thread(thread.id) is None


async def test_create_thread_unknown_board(any_repository) -> None:
    ghost_board = Board(slug="ghost", title="Not stored")
    thread, op = make_thread(ghost_board)
    with pytest.raises(NotFoundError):
        await any_repository.create_thread(thread, op)


async def test_reply_to_missing_thread(any_repository, repo_board) -> None:
    with pytest.raises(NotFoundError):
        await any_repository.create_post(make_reply(new_id(), utcnow()))


async def test_reply_flagged_op_rejected(any_repository, repo_board) -> None:
    thread, op = make_thread(repo_board)
    await any_repository.create_thread(thread, op)
    reply = make_reply(thread.id, utcnow()).model_copy(update={"is_op": True})
    with pytest.raises(ValidationError):
        await any_repository.create_post(reply)


async def test_reply_to_locked_thread_conflicts(any_repository, repo_board) -> None:
    thread, op = make_thread(repo_board)
    locked = thread.model_copy(update={"is_locked": True})
    await any_repository.create_thread(locked, op)
    with pytest.raises(ConflictError):
        await any_repository.create_post(make_reply(thread.id, utcnow()))
    _, posts = await any_repository.get_thread(thread.id)
    assert len(posts) == 1


async def test_reply_bumps_thread_ahead(any_repository, repo_board) -> None:
    """T1 at t=0, T2 at t=1, reply to T1 at t=2: T1 is listed first."""
    t0 = utcnow()
    first, first_op = make_thread(repo_board, t0)
    second, second_op = make_thread(repo_board, t0 + timedelta(seconds=1))
    await any_repository.create_thread(first, first_op)
    await any_repository.create_thread(second, second_op)
    assert [t.id for t in await any_repository.list_threads_paginated(repo_board.id, 10, 0)] == [
        second.id,
        first.id,
    ]

    await any_repository.create_post(make_reply(first.id, t0 + timedelta(seconds=2)))

    listed = await any_repository.list_threads_paginated(repo_board.id, 10, 0)
    assert [thread.id for thread in listed] == [first.id, second.id]
    assert listed[0].last_bump == t0 + timedelta(seconds=2)


async def test_stickies_are_listed_first(any_repository, repo_board) -> None:
    t0 = utcnow()
    sticky, sticky_op = make_thread(repo_board, t0)
    fresh, fresh_op = make_thread(repo_board, t0 + timedelta(minutes=5))
    await any_repository.create_thread(sticky.model_copy(update={"is_sticky": True}), sticky_op)
    await any_repository.create_thread(fresh, fresh_op)

    listed = await any_repository.list_threads_paginated(repo_board.id, 10, 0)
    assert [thread.id for thread in listed] == [sticky.id, fresh.id]


async def test_pagination_windows_concatenate(any_repository, repo_board) -> None:
    """Two windows of n equal one window of 2n."""
    t0 = utcnow()
    for index in range(7):
        # Pairs share a bump time so the id tie-break is exercised.
        thread, op = make_thread(repo_board, t0 + timedelta(seconds=index // 2))
        await any_repository.create_thread(thread, op)

    for size in (1, 2, 3):
        first = await any_repository.list_threads_paginated(repo_board.id, size, 0)
        second = await any_repository.list_threads_paginated(repo_board.id, size, size)
        combined = await any_repository.list_threads_paginated(repo_board.id, size * 2, 0)
        assert [t.id for t in first + second] == [t.id for t in combined]


async def test_negative_window_rejected(any_repository, repo_board) -> None:
    with pytest.raises(ValidationError):
        await any_repository.list_threads_paginated(repo_board.id, -1, 0)
    with pytest.raises(ValidationError):
        await any_repository.threads_with_op(repo_board.id, offset=-5)


async def test_threads_with_op_and_counts(any_repository, repo_board) -> None:
    t0 = utcnow()
    quiet, quiet_op = make_thread(repo_board, t0)
    busy, busy_op = make_thread(repo_board, t0 + timedelta(seconds=1))
    await any_repository.create_thread(quiet, quiet_op)
    await any_repository.create_thread(busy, busy_op)
    await any_repository.create_post(make_reply(busy.id, t0 + timedelta(seconds=2)))
    await any_repository.create_post(make_reply(busy.id, t0 + timedelta(seconds=3)))

    previews = await any_repository.threads_with_op(repo_board.id)
    assert [(p.thread.id, p.op.id) for p in previews] == [(busy.id, busy_op.id), (quiet.id, quiet_op.id)]
    assert [p.thread.id for p in await any_repository.threads_with_op(repo_board.id, limit=1, offset=1)] == [
        quiet.id
    ]
    assert await any_repository.count_threads(repo_board.id) == 2
    unknown = new_id()
    assert await any_repository.reply_counts([busy.id, quiet.id, unknown]) == {
        busy.id: 2,
        quiet.id: 0,
        unknown: 0,
    }


async def test_metadata_survives_storage(any_repository, repo_board) -> None:
    thread, op = make_thread(repo_board)
    thread = thread.model_copy(update={"metadata": {"subject": "hello"}})
    op = op.model_copy(update={"metadata": {"name": "Anon", "tripcode": "!abcdefghij"}})
    await any_repository.create_thread(thread, op)

    stored_thread, posts = await any_repository.get_thread(thread.id)
    assert stored_thread.metadata == {"subject": "hello"}
    assert posts[0].metadata == {"name": "Anon", "tripcode": "!abcdefghij"}


async def test_active_bans(any_repository) -> None:
    now = utcnow()
    permanent = Ban(ip_address="1.2.3.4", reason="spam")
    expired = Ban(ip_address="5.6.7.8", reason="old", expires_at=now - timedelta(hours=1))
    temporary = Ban(ip_address="9.9.9.0/24", reason="flood", expires_at=now + timedelta(hours=1))
    for ban in (permanent, expired, temporary):
        await any_repository.add_ban(ban)

    active = await any_repository.list_active_bans(now)
    assert {ban.id for ban in active} == {permanent.id, temporary.id}


async def test_thread_creation_is_atomic(repository, board, monkeypatch) -> None:
    """A failing OP insert leaves neither the thread nor the post behind."""
    thread, op = make_thread(board)

    async def failing_insert(session, post) -> None:
        raise OperationalError("INSERT INTO posts", {}, Exception("disk I/O error"))

    monkeypatch.setattr(repository, "_insert_post", failing_insert)
    with pytest.raises(InternalError):
        await repository.create_thread(thread, op)
    monkeypatch.undo()

    assert await repository.find_thread(thread.id) is None
    assert await repository.get_thread(thread.id) is None
    assert await repository.count_threads(board.id) == 0


async def test_sqlite_foreign_keys_enforced(repository) -> None:
    """The schema itself refuses a thread pointing at a missing board."""
    sessions = create_session_factory(repository.engine)
    with pytest.raises(IntegrityError):
        async with sessions() as session, session.begin():
            session.add(
                ThreadRow(
                    id=new_id(),
                    board_id=new_id(),
                    last_bump=utcnow(),
                    is_sticky=False,
                    is_locked=False,
                    metadata_={},
                )
            )
