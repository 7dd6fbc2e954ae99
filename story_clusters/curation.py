from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence

from story_clusters.nlp import is_press_release_like_text, normalize_text
from story_clusters.roles import resolve_source_role, source_role_priority, source_role_score_adjustment
from story_clusters.sources import SourceRegistry, resolve_quality_weight
from story_clusters.types import (
    Article,
    Citation,
    ClusterMember,
    CurationSummary,
    SourceRole,
    StoryCluster,
    StoryRecord,
)


DEFAULT_MAX_CITATIONS = 10
MIN_CITATIONS = 3
MAX_CITATIONS = 16

REPORTING_QUOTA = 2
OFFICIAL_QUOTA = 1
ANALYSIS_QUOTA = 1
OPINION_QUOTA = 1
OFFICIAL_SHARE_FOR_PRESS_RELEASE = 0.3


@dataclass(frozen=True)
class CitationCandidate:
    article: Article
    role: SourceRole
    source_key: str
    quality_weight: float
    is_representative: bool

    def sort_key(self) -> tuple[int, float, int, float]:
        return (
            -source_role_priority(self.role),
            -self.quality_weight,
            -int(self.is_representative),
            -self.article.effective_at.timestamp(),
        )

    def to_citation(self) -> Citation:
        return Citation(
            article_id=self.article.id,
            headline=self.article.title,
            source_name=self.article.source_name,
            url=self.article.url,
            source_role=self.role,
        )


def clamp_max_citations(value: Optional[int]) -> int:
    if value is None:
        value = DEFAULT_MAX_CITATIONS
    return max(MIN_CITATIONS, min(int(value), MAX_CITATIONS))


def to_candidate(member: ClusterMember, registry: Optional[SourceRegistry]) -> CitationCandidate:
    a = member.article
    return CitationCandidate(
        article=a,
        role=resolve_source_role(a, registry),
        source_key=normalize_text(a.source_name) or a.source_id,
        quality_weight=resolve_quality_weight(registry, a.source_id),
        is_representative=member.is_representative,
    )


def rank_candidates(candidates: Iterable[CitationCandidate]) -> list[CitationCandidate]:
    return sorted(candidates, key=CitationCandidate.sort_key)


def is_press_release_driven(cluster: StoryCluster, candidates: Sequence[CitationCandidate]) -> bool:
    official = sum(1 for c in candidates if c.role == "official")
    if official == 0:
        return False
    rep = cluster.representative
    if is_press_release_like_text(f"{rep.title} {rep.summary or ''}"):
        return True
    return official / max(1, len(cluster.members)) >= OFFICIAL_SHARE_FOR_PRESS_RELEASE


def _append_unique_by_source(
    target: list[CitationCandidate],
    candidates: Iterable[CitationCandidate],
    used_sources: set[str],
    max_add: int,
    *,
    opinion_cap: Optional[int] = None,
) -> None:
    for c in candidates:
        if max_add <= 0:
            return
        if c.source_key in used_sources:
            continue
        if opinion_cap is not None and c.role == "opinion":
            if sum(1 for t in target if t.role == "opinion") >= opinion_cap:
                continue
        target.append(c)
        used_sources.add(c.source_key)
        max_add -= 1


def summarize_roles(
    roles: Sequence[Optional[str]],
    *,
    press_release_driven: bool = False,
    opinion_limited: bool = False,
    source_diversity: int = 0,
) -> CurationSummary:
    official = sum(1 for r in roles if r == "official")
    return CurationSummary(
        reporting_count=sum(1 for r in roles if r == "reporting"),
        official_count=official,
        analysis_count=sum(1 for r in roles if r == "analysis"),
        opinion_count=sum(1 for r in roles if r == "opinion"),
        has_official_source=official > 0,
        press_release_driven=press_release_driven,
        opinion_limited=opinion_limited,
        source_diversity=source_diversity,
    )


def build_curated_citations(
    cluster: StoryCluster,
    max_citations: Optional[int] = DEFAULT_MAX_CITATIONS,
    registry: Optional[SourceRegistry] = None,
) -> tuple[list[Citation], CurationSummary]:
    """Pick a bounded, role-balanced set of citations for one cluster.

    Reporting leads (up to two outlets), an official source joins when the
    story reads as press-release driven, then one analysis piece; the rest of
    the budget goes to the best remaining non-opinion items, keeping one slot
    for a single opinion piece. No two citations share a source.
    """

    limit = clamp_max_citations(max_citations)
    candidates = rank_candidates(to_candidate(m, registry) for m in cluster.members)
    if not candidates:
        return [], summarize_roles([])

    reporting = [c for c in candidates if c.role == "reporting"]
    official = [c for c in candidates if c.role == "official"]
    analysis = [c for c in candidates if c.role == "analysis"]
    opinion = [c for c in candidates if c.role == "opinion"]
    press_release = is_press_release_driven(cluster, candidates)

    selected: list[CitationCandidate] = []
    used: set[str] = set()

    _append_unique_by_source(selected, reporting, used, REPORTING_QUOTA)
    if press_release:
        _append_unique_by_source(selected, official, used, OFFICIAL_QUOTA)
    _append_unique_by_source(selected, analysis, used, ANALYSIS_QUOTA)

    opinion_reserve = OPINION_QUOTA if opinion else 0
    _append_unique_by_source(
        selected,
        rank_candidates(reporting + official + analysis),
        used,
        max(0, limit - len(selected) - opinion_reserve),
    )
    _append_unique_by_source(selected, opinion, used, min(OPINION_QUOTA, max(0, limit - len(selected))))

    if not selected:
        _append_unique_by_source(selected, candidates, used, limit, opinion_cap=OPINION_QUOTA)

    citations = [c.to_citation() for c in selected[:limit]]
    selected_opinion = sum(1 for c in citations if c.source_role == "opinion")

    return citations, summarize_curation_from_links(
        [asdict(c) for c in citations],
        press_release_driven=press_release,
        opinion_limited=len(opinion) > selected_opinion,
    )


def summarize_curation_from_links(
    links: Iterable[Mapping[str, Any]],
    *,
    press_release_driven: bool = False,
    opinion_limited: bool = False,
) -> CurationSummary:
    """Rebuild a curation summary from stored citation links (role defaults to reporting)."""

    links = list(links)
    return summarize_roles(
        [str(link.get("source_role") or "reporting") for link in links],
        press_release_driven=bool(press_release_driven),
        opinion_limited=bool(opinion_limited),
        source_diversity=len({normalize_text(link.get("source_name")) for link in links}),
    )


def story_feed_score(record: StoryRecord) -> int:
    """Feed ordering score: recency in ms plus citation, congestion and role bonuses."""

    cluster = record.cluster
    curation = record.curation
    lead_role = record.citations[0].source_role if record.citations else "reporting"

    score = int(cluster.representative.effective_at.timestamp() * 1000)
    score += min(20, len(record.citations)) * 1_000
    score += round(max(0.0, record.congestion.congestion_score) * 10_000)
    score += 5_000 if record.congestion.is_congested else 0
    score += source_role_score_adjustment(lead_role)
    score += 1_400 if curation.has_official_source else 0
    score += curation.reporting_count * 450
    score -= curation.opinion_count * 1_100
    return score
