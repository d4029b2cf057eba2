"""Board pages and the post submission endpoint."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import RedirectResponse
from htpy.starlette import HtpyResponse

from anonboard.api.dependencies import ClientAddressDep, PipelineDep, PortsDep, SettingsDep
from anonboard.core.errors import NotFoundError
from anonboard.schemas import Board
from anonboard.services.ingestion import Submission
from anonboard.services.multipart import read_form_fields
from anonboard.services.ports import Ports
from anonboard.views import render_board_index, render_catalog, render_thread, render_welcome

router = APIRouter(tags=["board"])


async def _require_board(ports: Ports, slug: str) -> Board:
    board = await ports.repository.get_board(slug)
    if board is None:
        raise NotFoundError("board", slug)
    return board


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@router.get("/")
async def welcome(ports: PortsDep, settings: SettingsDep) -> HtpyResponse:
    """List the boards."""
    boards = await ports.repository.list_boards()
    return HtpyResponse(render_welcome(app_name=settings.app_name, boards=boards))


@router.get("/{board_slug}/")
async def board_index(
    board_slug: str,
    ports: PortsDep,
    settings: SettingsDep,
    page: Annotated[int, Query(ge=1)] = 1,
) -> HtpyResponse:
    """Board index: one page of threads with their OP posts."""
    board = await _require_board(ports, board_slug)
    per_page = settings.threads_per_page
    total = await ports.repository.count_threads(board.id)
    previews = await ports.repository.threads_with_op(board.id, limit=per_page, offset=(page - 1) * per_page)
    counts = await ports.repository.reply_counts([preview.thread.id for preview in previews])
    return HtpyResponse(
        render_board_index(
            board=board,
            boards=await ports.repository.list_boards(),
            previews=previews,
            reply_counts=counts,
            media=ports.media,
            page=page,
            total_pages=max(1, (total + per_page - 1) // per_page),
        )
    )


@router.get("/{board_slug}/catalog")
async def board_catalog(board_slug: str, ports: PortsDep) -> HtpyResponse:
    """Catalog: every thread on the board as a thumbnail tile."""
    board = await _require_board(ports, board_slug)
    previews = await ports.repository.threads_with_op(board.id)
    counts = await ports.repository.reply_counts([preview.thread.id for preview in previews])
    return HtpyResponse(
        render_catalog(
            board=board,
            boards=await ports.repository.list_boards(),
            previews=previews,
            reply_counts=counts,
            media=ports.media,
        )
    )


@router.get("/{board_slug}/thread/{thread_id}")
async def view_thread(board_slug: str, thread_id: str, ports: PortsDep) -> HtpyResponse:
    """Thread view with every post, oldest first."""
    board = await _require_board(ports, board_slug)
    try:
        key = uuid.UUID(thread_id)
    except ValueError:
        raise NotFoundError("thread", thread_id) from None
    found = await ports.repository.get_thread(key)
    if found is None or found[0].board_id != board.id:
        raise NotFoundError("thread", thread_id)
    thread, posts = found
    return HtpyResponse(
        render_thread(
            board=board,
            boards=await ports.repository.list_boards(),
            thread=thread,
            posts=posts,
            media=ports.media,
        )
    )


@router.post("/{board_slug}/post")
async def submit_post(
    board_slug: str,
    request: Request,
    pipeline: PipelineDep,
    client_addr: ClientAddressDep,
) -> RedirectResponse:
    """Accept a multipart submission and redirect to its thread."""
    fields = read_form_fields(request.headers.get("content-type"), request.stream())
    result = await pipeline.ingest(Submission(client_addr=client_addr, board_slug=board_slug), fields)
    return RedirectResponse(result.redirect_to, status_code=status.HTTP_303_SEE_OTHER)
