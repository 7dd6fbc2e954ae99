from __future__ import annotations

from typing import Optional

from story_clusters.nlp import is_opinion_like_title
from story_clusters.sources import SourceRegistry, resolve_base_role
from story_clusters.types import Article, SourceRole


_ROLE_PRIORITY = {
    "reporting": 4,
    "official": 3,
    "analysis": 2,
    "opinion": 1,
}

_ROLE_SCORE_ADJUSTMENT = {
    "reporting": 3200,
    "official": 1800,
    "analysis": 600,
    "opinion": -3800,
}


def source_role_priority(role: Optional[str]) -> int:
    return _ROLE_PRIORITY.get(str(role or ""), 0)


def source_role_score_adjustment(role: Optional[str]) -> int:
    """Feed-ranking bonus (or penalty) for a story led by a source of this role."""

    return _ROLE_SCORE_ADJUSTMENT.get(str(role or ""), 0)


def resolve_source_role(article: Article, registry: Optional[SourceRegistry]) -> SourceRole:
    """Registry role for the article's source, demoted to opinion for opinion-styled headlines."""

    role = resolve_base_role(
        registry,
        article.source_id,
        source_name=article.source_name,
        source_badge=article.source_badge,
        source_category=article.source_category,
    )
    if role == "reporting" and is_opinion_like_title(article.title):
        return "opinion"
    return role
