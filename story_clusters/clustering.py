from __future__ import annotations

import logging
from datetime import timezone
from typing import Mapping, Optional, Sequence

from story_clusters.nlp import title_slug
from story_clusters.roles import resolve_source_role, source_role_priority
from story_clusters.similarity import SimilarityScorer
from story_clusters.sources import SourceRegistry
from story_clusters.types import EPOCH, Article, ClusterMember, StoryCluster


logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.72
DEFAULT_WINDOW_HOURS = 48


class UnionFind:
    """Disjoint sets over the integers 0..size-1."""

    def __init__(self, size: int) -> None:
        self._parent = list(range(size))
        self._rank = [0] * size

    def find(self, x: int) -> int:
        root = x
        while self._parent[root] != root:
            root = self._parent[root]
        # path compression
        while self._parent[x] != root:
            self._parent[x], x = root, self._parent[x]
        return root

    def union(self, a: int, b: int) -> None:
        ra = self.find(a)
        rb = self.find(b)
        if ra == rb:
            return
        if self._rank[ra] < self._rank[rb]:
            self._parent[ra] = rb
        elif self._rank[ra] > self._rank[rb]:
            self._parent[rb] = ra
        else:
            self._parent[rb] = ra
            self._rank[ra] += 1


def cluster_key_for_article(article: Article) -> str:
    slug = title_slug(article.title) or "story"
    ts = article.effective_at
    if ts == EPOCH:
        return f"{slug}-undated"
    return f"{slug}-{ts.astimezone(timezone.utc).strftime('%Y%m%d')}"


def pick_representative(members: Sequence[Article], registry: Optional[SourceRegistry] = None) -> Optional[Article]:
    """Highest role priority, then most primary topics, then newest; earlier members win exact ties."""

    if not members:
        return None

    def rank(indexed: tuple[int, Article]) -> tuple[int, int, float, int]:
        idx, a = indexed
        return (
            -source_role_priority(resolve_source_role(a, registry)),
            -a.primary_topic_count,
            -a.effective_at.timestamp(),
            idx,
        )

    return min(enumerate(members), key=rank)[1]


def dominant_topic_label(members: Sequence[Article]) -> Optional[str]:
    weights: dict[str, int] = {}
    for a in members:
        for t in a.topics:
            weights[t.label] = weights.get(t.label, 0) + (2 if t.is_primary else 1)
    if not weights:
        return None
    return min(weights.items(), key=lambda kv: (-kv[1], kv[0]))[0]


def build_story_clusters(
    articles: Sequence[Article],
    *,
    embeddings: Mapping[str, Sequence[float]] | None = None,
    registry: Optional[SourceRegistry] = None,
    threshold: float = DEFAULT_THRESHOLD,
    window_hours: float = DEFAULT_WINDOW_HOURS,
) -> list[StoryCluster]:
    """Partition a batch into story clusters.

    Every pair of articles whose effective timestamps are within
    ``window_hours`` is scored; pairs at or above ``threshold`` are joined.
    Embeddings must already be fetched: this function does no I/O.
    """

    if not articles:
        return []

    ordered = sorted(articles, key=lambda a: a.effective_at, reverse=True)
    scorer = SimilarityScorer(embeddings)
    window_seconds = float(window_hours) * 3600.0
    stamps = [a.effective_at.timestamp() for a in ordered]

    uf = UnionFind(len(ordered))
    pair_scores: dict[tuple[str, str], float] = {}
    compared = 0

    for i in range(len(ordered)):
        for j in range(i + 1, len(ordered)):
            if abs(stamps[i] - stamps[j]) > window_seconds:
                continue
            s = scorer.score(ordered[i], ordered[j])
            compared += 1
            pair_scores[(ordered[i].id, ordered[j].id)] = s
            pair_scores[(ordered[j].id, ordered[i].id)] = s
            if s >= threshold:
                uf.union(i, j)

    by_root: dict[int, list[Article]] = {}
    for idx, a in enumerate(ordered):
        by_root.setdefault(uf.find(idx), []).append(a)

    clusters: list[StoryCluster] = []
    for members in by_root.values():
        representative = pick_representative(members, registry)
        if representative is None:
            continue

        cluster_members: list[ClusterMember] = []
        for m in members:
            if m is representative:
                cluster_members.append(ClusterMember(article=m, similarity=1.0, is_representative=True))
                continue
            s = pair_scores.get((representative.id, m.id))
            if s is None:
                s = scorer.score(representative, m)
            cluster_members.append(ClusterMember(article=m, similarity=round(s, 3), is_representative=False))

        clusters.append(
            StoryCluster(
                cluster_key=cluster_key_for_article(representative),
                representative=representative,
                members=tuple(cluster_members),
                topic_label=dominant_topic_label(members),
            )
        )

    clusters.sort(
        key=lambda c: (-len(c.members), -c.representative.effective_at.timestamp(), c.cluster_key)
    )

    logger.info(
        "Built %d clusters from %d articles (%d pairs scored, threshold=%.2f, window=%sh)",
        len(clusters),
        len(ordered),
        compared,
        threshold,
        window_hours,
    )
    return clusters
