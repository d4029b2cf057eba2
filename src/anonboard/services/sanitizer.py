"""Turn raw user text into the HTML fragment stored as post content."""

from __future__ import annotations

import html
import re

GREENTEXT_OPEN = '<span class="greentext">'
GREENTEXT_CLOSE = "</span>"
LINE_BREAK = "<br />"

_QUOTE_PREFIX = "&gt;"
_SPAN_TAGS = re.compile(re.escape(GREENTEXT_OPEN) + "|" + re.escape(GREENTEXT_CLOSE))


def sanitize(raw: str) -> str:
    """Escape `raw` and apply the greentext transform.

    Every `&`, `<`, `>`, `"` and `'` is escaped, lines whose escaped form
    starts with `&gt;` are wrapped in a greentext span and lines are joined
    with `<br />`. No other markup is ever emitted.
    """
    escaped = html.escape(raw.replace("\r\n", "\n"), quote=True)
    lines = []
    for line in escaped.split("\n"):
        if line.startswith(_QUOTE_PREFIX):
            line = f"{GREENTEXT_OPEN}{line}{GREENTEXT_CLOSE}"
        lines.append(line)
    return LINE_BREAK.join(lines)


def plain_text(fragment: str) -> str:
    """Recover the text a reader sees from a fragment made by `sanitize`."""
    text = _SPAN_TAGS.sub("", fragment)
    return html.unescape(text.replace(LINE_BREAK, "\n"))


def excerpt(fragment: str, limit: int = 120) -> str:
    """Return a sanitized excerpt of at most `limit` visible characters."""
    text = plain_text(fragment)
    if len(text) > limit:
        text = text[: max(limit - 1, 0)].rstrip() + "…"
    return sanitize(text)
