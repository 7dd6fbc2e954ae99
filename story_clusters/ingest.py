"""Normalize upstream article records into immutable ``Article`` values.

Upstream feeds are inconsistent: field names come in snake_case or
camelCase, timestamps arrive as strings or datetimes, and the topic field is
sometimes a single tag and sometimes a list. Everything is settled here so the
clustering code only ever sees ``tuple[Topic, ...]`` and tz-aware datetimes.
"""

from __future__ import annotations

import json
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from dateutil import parser as dateparser

from story_clusters.sanitize import extract_text_from_html_fragment, sanitize_headline_text
from story_clusters.types import Article, Topic


logger = logging.getLogger(__name__)

_SLUG_RE = re.compile(r"[^a-z0-9]+")

_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id", "article_id", "articleId"),
    "title": ("title", "headline"),
    "url": ("url", "article_url", "articleUrl", "link"),
    "summary": ("summary", "excerpt"),
    "full_text_excerpt": ("full_text_excerpt", "fullTextExcerpt"),
    "published_at": ("published_at", "publishedAt", "published"),
    "fetched_at": ("fetched_at", "fetchedAt", "ingested_at"),
    "source_id": ("source_id", "sourceId", "source"),
    "source_name": ("source_name", "sourceName"),
    "source_category": ("source_category", "sourceCategory"),
    "source_badge": ("source_badge", "sourceBadge"),
    "topics": ("topics", "topic", "tags"),
}


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    # pandas.NaT from parsed date columns
    if type(value).__name__ == "NaTType":
        return True
    return isinstance(value, str) and not value.strip()


def _field(record: dict[str, Any], name: str) -> Any:
    for key in _FIELD_ALIASES[name]:
        value = record.get(key)
        if not _is_missing(value):
            return value
    return None


def _str_or_none(value: Any) -> Optional[str]:
    if _is_missing(value):
        return None
    return str(value).strip()


def parse_datetime(value: Any) -> Optional[datetime]:
    if _is_missing(value):
        return None
    if isinstance(value, datetime):
        dt = value
    elif hasattr(value, "to_pydatetime"):
        dt = value.to_pydatetime()
    else:
        try:
            dt = dateparser.parse(str(value))
        except (ValueError, OverflowError):
            return None
    if dt is None:
        return None
    # Ensure tz-aware for consistent comparisons
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def slugify(value: str) -> str:
    return _SLUG_RE.sub("-", value.lower()).strip("-")


def _to_topic(value: Any) -> Optional[Topic]:
    if isinstance(value, Topic):
        return value
    if isinstance(value, dict):
        label = _str_or_none(value.get("label") or value.get("name") or value.get("title"))
        slug = _str_or_none(value.get("slug"))
        if slug is None and label is None:
            return None
        slug = slugify(slug or label or "")
        if not slug:
            return None
        return Topic(
            slug=slug,
            label=label or slug,
            type=str(value.get("type") or value.get("topic_type") or value.get("topicType") or "topic"),
            is_primary=bool(value.get("is_primary", value.get("isPrimary", False))),
        )
    label = _str_or_none(value)
    if label is None:
        return None
    slug = slugify(label)
    if not slug:
        return None
    return Topic(slug=slug, label=label)


def normalize_topics(value: Any) -> tuple[Topic, ...]:
    """Coerce a single topic or a collection of topics into an ordered, slug-unique tuple."""

    if _is_missing(value):
        return ()
    if isinstance(value, str) and value.lstrip()[:1] in ("[", "{"):
        # list-valued columns arrive JSON-encoded from CSV
        try:
            return normalize_topics(json.loads(value))
        except json.JSONDecodeError:
            pass
    if isinstance(value, (str, dict, Topic)):
        items: Iterable[Any] = [value]
    elif hasattr(value, "tolist"):
        items = value.tolist()
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = value
    else:
        items = [value]

    out: list[Topic] = []
    seen: set[str] = set()
    for item in items:
        topic = _to_topic(item)
        if topic is None or topic.slug in seen:
            continue
        seen.add(topic.slug)
        out.append(topic)
    return tuple(out)


def record_to_article(record: dict[str, Any]) -> Optional[Article]:
    article_id = _str_or_none(_field(record, "id"))
    if article_id is None:
        return None

    summary = _str_or_none(_field(record, "summary"))
    excerpt = _str_or_none(_field(record, "full_text_excerpt"))
    source_id = _str_or_none(_field(record, "source_id")) or ""

    return Article(
        id=article_id,
        title=sanitize_headline_text(_str_or_none(_field(record, "title")) or ""),
        url=_str_or_none(_field(record, "url")) or "",
        published_at=parse_datetime(_field(record, "published_at")),
        fetched_at=parse_datetime(_field(record, "fetched_at")),
        summary=extract_text_from_html_fragment(summary) if summary else None,
        full_text_excerpt=extract_text_from_html_fragment(excerpt) if excerpt else None,
        source_id=source_id,
        source_name=_str_or_none(_field(record, "source_name")) or source_id,
        source_category=_str_or_none(_field(record, "source_category")),
        source_badge=_str_or_none(_field(record, "source_badge")),
        topics=normalize_topics(_field(record, "topics")),
    )


def records_to_articles(records: Iterable[dict[str, Any]]) -> list[Article]:
    seen: set[str] = set()
    out: list[Article] = []
    skipped = 0
    for r in records:
        a = record_to_article(r)
        if a is None:
            skipped += 1
            continue
        if a.id in seen:
            logger.warning("Duplicate article id %s in batch; keeping first occurrence", a.id)
            continue
        seen.add(a.id)
        out.append(a)
    if skipped:
        logger.warning("Skipped %d records without an id", skipped)
    return out
