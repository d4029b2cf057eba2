"""Building blocks shared by the board pages."""

import uuid
from datetime import datetime

from htpy import BaseElement, a, article, button, div, form, img, input, label, span, textarea
from markupsafe import Markup

from anonboard.schemas import Post
from anonboard.services.ports import MediaStore


def _format_timestamp(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S UTC")


def post_author(post: Post) -> BaseElement:
    # Names are escaped before they are stored.
    name = post.metadata.get("name") or "Anonymous"
    return span(class_="post-author")[
        span(class_="post-name")[Markup(name)],
        span(class_="post-tripcode")[post.metadata["tripcode"]] if post.metadata.get("tripcode") else None,
        span(class_="post-uid")[f"ID:{post.user_id_in_thread}"],
    ]


def media_thumbnail(media: MediaStore, media_id: str | None) -> BaseElement | None:
    if media_id is None:
        return None
    return a(class_="post-media", href=media.url_of(media_id), target="_blank")[
        img(src=media.thumbnail_url_of(media_id), alt="", loading="lazy"),
    ]


def post_card(post: Post, media: MediaStore, *, reply_count: int | None = None, href: str | None = None) -> BaseElement:
    return article(class_="post op" if post.is_op else "post reply", id=f"p{post.id}")[
        div(class_="post-header")[
            post_author(post),
            span(class_="post-time")[_format_timestamp(post.created_at)],
            a(class_="post-link", href=href)["Reply"] if href else None,
            span(class_="post-replies")[f"{reply_count} replies"] if reply_count is not None else None,
        ],
        media_thumbnail(media, post.media_id),
        # Content is stored already sanitized.
        div(class_="post-body")[Markup(post.content)],
    ]


def post_form(board_slug: str, thread_id: uuid.UUID | None = None) -> BaseElement:
    return form(
        class_="post-form",
        method="post",
        action=f"/{board_slug}/post",
        enctype="multipart/form-data",
    )[
        input(type="hidden", name="thread_id", value=str(thread_id)) if thread_id else None,
        label[
            "Name",
            input(type="text", name="name", placeholder="Anonymous", autocomplete="off"),
        ],
        label["Comment", textarea(name="content", rows="5", cols="60")],
        label["File", input(type="file", name="file", accept="image/*")],
        button(type="submit")["Reply" if thread_id else "New thread"],
    ]
