from htpy import Node, a, body, div, footer, head, header, html, link, main, meta, nav, title

from anonboard.schemas import Board


def render_page(*, title_text: str, content: Node, boards: list[Board] | None = None) -> Node:
    return html(lang="en")[
        head[
            meta(charset="utf-8"),
            title[title_text],
            meta(name="viewport", content="width=device-width, initial-scale=1"),
            link(rel="stylesheet", href="/static/app.css"),
        ],
        body[
            header(class_="board-nav")[
                nav[
                    a(href="/")["home"],
                    [a(href=f"/{board.slug}/", title=board.title)[f"/{board.slug}/"] for board in boards or []],
                ],
            ],
            main(class_="content")[content],
            footer[div(class_="footer-note")["All posts are anonymous."]],
        ],
    ]
