from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from story_clusters.sources import SourceProfile, StaticSourceRegistry
from story_clusters.types import Article, Topic

NOW = datetime(2026, 2, 13, 14, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_article() -> Callable[..., Article]:
    def _make(
        id: str,
        title: str = "",
        *,
        hours_ago: float | None = 2.0,
        source_id: str = "defense-news",
        source_name: str | None = None,
        source_category: str | None = None,
        source_badge: str | None = None,
        topics: tuple[Topic, ...] = (),
        summary: str | None = None,
    ) -> Article:
        published = None if hours_ago is None else NOW - timedelta(hours=hours_ago)
        return Article(
            id=id,
            title=title,
            url=f"https://example.com/{id}",
            published_at=published,
            fetched_at=published,
            summary=summary,
            source_id=source_id,
            source_name=source_name if source_name is not None else source_id,
            source_category=source_category,
            source_badge=source_badge,
            topics=topics,
        )

    return _make


@pytest.fixture
def registry() -> StaticSourceRegistry:
    return StaticSourceRegistry(
        [
            SourceProfile("breaking-defense", "Breaking Defense", "high", "reporting"),
            SourceProfile("defense-news", "Defense News", "high", "reporting"),
            SourceProfile("defense-one", "Defense One", "high", "reporting"),
            SourceProfile("the-war-zone", "The War Zone", "medium", "reporting"),
            SourceProfile("war-on-the-rocks", "War on the Rocks", "high", "analysis"),
            SourceProfile("csis", "CSIS", "high", "analysis"),
            SourceProfile("real-clear-defense", "RealClearDefense", "baseline", "opinion"),
            SourceProfile("dod-releases", "U.S. Department of Defense Releases", "high", "official"),
        ]
    )
