from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Optional

SourceRole = Literal["reporting", "official", "analysis", "opinion", "unknown"]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Topic:
    slug: str
    label: str
    type: str = "topic"
    is_primary: bool = False


@dataclass(frozen=True)
class Article:
    id: str
    title: str
    url: str
    published_at: Optional[datetime]
    fetched_at: Optional[datetime] = None
    summary: Optional[str] = None
    full_text_excerpt: Optional[str] = None

    # source identity
    source_id: str = ""
    source_name: str = ""
    source_category: Optional[str] = None
    source_badge: Optional[str] = None

    topics: tuple[Topic, ...] = field(default_factory=tuple)

    @property
    def effective_at(self) -> datetime:
        ts = self.published_at or self.fetched_at
        if ts is None:
            return EPOCH
        if ts.tzinfo is None:
            return ts.replace(tzinfo=timezone.utc)
        return ts

    @property
    def primary_topic_count(self) -> int:
        return sum(1 for t in self.topics if t.is_primary)


@dataclass(frozen=True)
class ClusterMember:
    article: Article
    similarity: float
    is_representative: bool


@dataclass(frozen=True)
class StoryCluster:
    cluster_key: str
    representative: Article
    members: tuple[ClusterMember, ...]
    topic_label: Optional[str] = None


@dataclass(frozen=True)
class CongestionEvaluation:
    article_count: int
    unique_sources: int
    congestion_score: float
    is_congested: bool


@dataclass(frozen=True)
class Citation:
    article_id: str
    headline: str
    source_name: str
    url: str
    source_role: SourceRole


@dataclass(frozen=True)
class CurationSummary:
    reporting_count: int = 0
    official_count: int = 0
    analysis_count: int = 0
    opinion_count: int = 0
    has_official_source: bool = False
    press_release_driven: bool = False
    opinion_limited: bool = False
    source_diversity: int = 0


@dataclass(frozen=True)
class StoryRecord:
    cluster: StoryCluster
    congestion: CongestionEvaluation
    citations: tuple[Citation, ...]
    curation: CurationSummary
