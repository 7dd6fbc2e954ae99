from __future__ import annotations

import re
from typing import Iterable, Optional

from story_clusters.sanitize import sanitize_headline_text


_OPINION_INDICATORS = (
    "op-ed",
    "op ed",
    "opinion",
    "commentary",
    "editorial",
    "guest essay",
    "viewpoint",
    "column",
)

_PRESS_RELEASE_INDICATORS = (
    "press release",
    "statement",
    "awards",
    "award",
    "contract",
    "rfp",
    "solicitation",
    "budget request",
    "appropriation",
    "official says",
    "official statement",
)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_WS_RE = re.compile(r"\s+")

CLUSTER_SLUG_MAX_CHARS = 68


def normalize_text(text: Optional[str]) -> str:
    """Lowercase and collapse whitespace; used for marker lookups and source keys."""

    if not text:
        return ""
    return _WS_RE.sub(" ", text.lower()).strip()


def normalize_title(title: Optional[str]) -> str:
    text = sanitize_headline_text(title or "").lower()
    text = _NON_ALNUM_RE.sub(" ", text)
    return _WS_RE.sub(" ", text).strip()


def tokenize_title(title: Optional[str]) -> frozenset[str]:
    normalized = normalize_title(title)
    if not normalized:
        return frozenset()
    return frozenset(t for t in normalized.split(" ") if len(t) > 2)


def title_slug(title: Optional[str], max_chars: int = CLUSTER_SLUG_MAX_CHARS) -> str:
    slug = normalize_title(title).replace(" ", "-")
    return slug[:max_chars].strip("-")


def has_indicator(text: str, indicators: Iterable[str]) -> bool:
    return any(i in text for i in indicators)


def is_opinion_like_title(title: Optional[str]) -> bool:
    return has_indicator(normalize_text(title), _OPINION_INDICATORS)


def is_press_release_like_text(text: Optional[str]) -> bool:
    return has_indicator(normalize_text(text), _PRESS_RELEASE_INDICATORS)
