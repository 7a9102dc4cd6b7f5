#!/usr/bin/env python3
"""
content_parser.py — markup → HTML renderer with mention extraction
-------------------------------------------------------------------
Supports a deliberately small inline syntax:

  **bold**  *italic*  `code`  https://links  @username

Blank lines separate paragraphs, single newlines become <br>.
Anything that does not form a complete token is kept as literal
(escaped) text, so parsing never fails on malformed input.

Mentions are returned in the order they appear in the source,
duplicates included. Mentions inside `code` spans are ignored.
"""

import html
import re
from typing import List

from core.models import ParseResult

USERNAME_PATTERN = r"[A-Za-z0-9_-]{1,32}"

INLINE_RE = re.compile(
    r"(?P<code>`[^`\n]+`)"
    r"|(?P<bold>\*\*(?=\S)[^*\n]+?\*\*)"
    r"|(?P<italic>\*(?=[^\s*])[^*\n]+?\*)"
    r"|(?P<url>https?://[^\s<>\"'`]+)"
    r"|(?P<mention>(?<![\w@])@" + USERNAME_PATTERN + r"(?![\w-]))"
)
PARAGRAPH_RE = re.compile(r"\n[ \t]*\n+")
URL_TRAILING = ".,;:!?)]}"


class ContentParser:
    """Stateless renderer; one instance can be shared by every request."""

    def __init__(self, mention_href: str = "/u/{username}"):
        self.mention_href = mention_href

    def parse(self, content: str) -> ParseResult:
        mentions: List[str] = []
        text = (content or "").replace("\r\n", "\n").strip()
        if not text:
            return ParseResult(text="", mentions=mentions)

        paragraphs = []
        for block in PARAGRAPH_RE.split(text):
            block = block.strip("\n")
            if not block.strip():
                continue
            lines = [self._render_inline(line, mentions) for line in block.split("\n")]
            paragraphs.append("<p>" + "<br>".join(lines) + "</p>")

        return ParseResult(text="".join(paragraphs), mentions=mentions)

    # ───────────────────────────
    # Inline rendering
    # ───────────────────────────
    def _render_inline(self, text: str, mentions: List[str]) -> str:
        out = []
        pos = 0
        for m in INLINE_RE.finditer(text):
            out.append(html.escape(text[pos:m.start()]))
            pos = m.end()
            kind = m.lastgroup
            token = m.group(kind)

            if kind == "code":
                out.append(f"<code>{html.escape(token[1:-1])}</code>")
            elif kind == "bold":
                out.append(f"<strong>{self._render_inline(token[2:-2], mentions)}</strong>")
            elif kind == "italic":
                out.append(f"<em>{self._render_inline(token[1:-1], mentions)}</em>")
            elif kind == "url":
                out.append(self._render_url(token))
            elif kind == "mention":
                username = token[1:]
                mentions.append(username)
                href = html.escape(self.mention_href.format(username=username))
                out.append(f'<a class="mention" href="{href}">@{html.escape(username)}</a>')

        out.append(html.escape(text[pos:]))
        return "".join(out)

    def _render_url(self, url: str) -> str:
        trailing = ""
        while url and url[-1] in URL_TRAILING:
            trailing = url[-1] + trailing
            url = url[:-1]
        safe = html.escape(url)
        return f'<a href="{safe}" rel="nofollow">{safe}</a>{html.escape(trailing)}'
