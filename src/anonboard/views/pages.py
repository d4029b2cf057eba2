import uuid

from htpy import Node, a, div, h1, h2, hr, img, li, p, span, ul
from markupsafe import Markup

from anonboard.schemas import Board, Post, Thread, ThreadPreview
from anonboard.services.ports import MediaStore
from anonboard.services.sanitizer import excerpt, plain_text
from anonboard.views.components import post_card, post_form
from anonboard.views.layout import render_page


def render_welcome(*, app_name: str, boards: list[Board]) -> Node:
    content = div(class_="welcome")[
        h1[app_name],
        p["Pick a board. No accounts, no names unless you want one."],
        ul(class_="board-list")[
            [
                li[
                    a(href=f"/{board.slug}/")[f"/{board.slug}/ - {board.title}"],
                    span(class_="board-description")[f" {board.description}"] if board.description else None,
                ]
                for board in boards
            ]
        ],
    ]
    return render_page(title_text=app_name, content=content, boards=boards)


def render_board_index(
    *,
    board: Board,
    boards: list[Board],
    previews: list[ThreadPreview],
    reply_counts: dict[uuid.UUID, int],
    media: MediaStore,
    page: int,
    total_pages: int,
) -> Node:
    content = div(class_="board-index")[
        h1[f"/{board.slug}/ - {board.title}"],
        p(class_="board-description")[board.description] if board.description else None,
        a(class_="catalog-link", href=f"/{board.slug}/catalog")["Catalog"],
        post_form(board.slug),
        hr,
        [
            div(class_="thread-preview" + (" sticky" if preview.thread.is_sticky else ""))[
                post_card(
                    preview.op,
                    media,
                    reply_count=reply_counts.get(preview.thread.id, 0),
                    href=f"/{board.slug}/thread/{preview.thread.id}",
                ),
                hr,
            ]
            for preview in previews
        ],
        div(class_="pagination")[
            [
                a(href=f"/{board.slug}/?page={number}", class_="page current" if number == page else "page")[str(number)]
                for number in range(1, total_pages + 1)
            ]
        ],
    ]
    return render_page(title_text=f"/{board.slug}/ - {board.title}", content=content, boards=boards)


def render_catalog(
    *,
    board: Board,
    boards: list[Board],
    previews: list[ThreadPreview],
    reply_counts: dict[uuid.UUID, int],
    media: MediaStore,
) -> Node:
    content = div(class_="catalog")[
        h1[f"/{board.slug}/ - Catalog"],
        a(href=f"/{board.slug}/")["Return"],
        div(class_="catalog-grid")[
            [
                a(class_="catalog-item", href=f"/{board.slug}/thread/{preview.thread.id}")[
                    (
                        img(src=media.thumbnail_url_of(preview.op.media_id), alt="", loading="lazy")
                        if preview.op.media_id
                        else None
                    ),
                    span(class_="catalog-replies")[f"R: {reply_counts.get(preview.thread.id, 0)}"],
                    div(class_="catalog-excerpt")[Markup(excerpt(preview.op.content))],
                ]
                for preview in previews
            ]
        ],
    ]
    return render_page(title_text=f"/{board.slug}/ - Catalog", content=content, boards=boards)


def _thread_title(board: Board, op: Post | None) -> str:
    text = plain_text(op.content).strip() if op is not None else ""
    if not text:
        return f"/{board.slug}/ - {board.title}"
    first_line = text.splitlines()[0]
    if len(first_line) > 60:
        first_line = first_line[:59].rstrip() + "…"
    return f"/{board.slug}/ - {first_line}"


def render_thread(
    *,
    board: Board,
    boards: list[Board],
    thread: Thread,
    posts: list[Post],
    media: MediaStore,
) -> Node:
    op = next((post for post in posts if post.is_op), None)
    content = div(class_="thread", id=f"t{thread.id}")[
        h2[a(href=f"/{board.slug}/")[f"/{board.slug}/"], " ", span(class_="thread-id")[str(thread.id)]],
        span(class_="thread-locked")["Locked"] if thread.is_locked else None,
        [post_card(post, media) for post in posts],
        hr,
        None if thread.is_locked else post_form(board.slug, thread.id),
    ]
    return render_page(title_text=_thread_title(board, op), content=content, boards=boards)
