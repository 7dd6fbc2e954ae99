from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from story_clusters.types import CongestionEvaluation, StoryCluster


ARTICLE_WEIGHT = 0.6
SOURCE_WEIGHT = 0.4


@dataclass(frozen=True)
class CongestionRules:
    min_articles: int = 10
    min_sources: int = 6
    window_hours: float = 24


DEFAULT_CONGESTION_RULES = CongestionRules()


def evaluate_cluster_congestion(
    cluster: StoryCluster,
    now: Optional[datetime] = None,
    rules: Optional[CongestionRules] = None,
) -> CongestionEvaluation:
    """Volume and source diversity of a cluster over a trailing window.

    A cluster is congested only when both the article count and the number
    of distinct sources reach their minimums; the blended score is reported
    alongside but does not decide it.
    """

    rules = rules or DEFAULT_CONGESTION_RULES
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    since = now - timedelta(hours=float(rules.window_hours))

    recent = [m for m in cluster.members if m.article.effective_at >= since]
    article_count = len(recent)
    unique_sources = len({m.article.source_id for m in recent})

    article_part = min(1.0, article_count / max(1, rules.min_articles))
    source_part = min(1.0, unique_sources / max(1, rules.min_sources))
    score = round(ARTICLE_WEIGHT * article_part + SOURCE_WEIGHT * source_part, 3)

    return CongestionEvaluation(
        article_count=article_count,
        unique_sources=unique_sources,
        congestion_score=score,
        is_congested=article_count >= rules.min_articles and unique_sources >= rules.min_sources,
    )
