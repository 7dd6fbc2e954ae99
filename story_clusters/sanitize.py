from __future__ import annotations

import html
import re

from bs4 import BeautifulSoup


_WS_RE = re.compile(r"\s+")
# a truncated entity left dangling at the end of a feed headline, e.g. "Navy &am"
_TRAILING_ENTITY_RE = re.compile(r"&(?:[a-z]{2,12}|#x?[0-9a-f]{2,8})$", re.IGNORECASE)


def sanitize_plain_text(text: str) -> str:
    text = html.unescape(text or "")
    return _WS_RE.sub(" ", text).strip()


def sanitize_headline_text(text: str) -> str:
    text = _WS_RE.sub(" ", html.unescape(text or ""))
    return _TRAILING_ENTITY_RE.sub("", text).strip()


def extract_text_from_html_fragment(html_fragment: str) -> str:
    """Convert an HTML snippet (e.g., a feed summary) to plain text."""

    if not html_fragment or "<" not in html_fragment:
        return sanitize_plain_text(html_fragment)
    soup = BeautifulSoup(html_fragment, "lxml")
    return sanitize_plain_text(soup.get_text(" ", strip=True))
