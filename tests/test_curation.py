"""Tests for story_clusters.curation."""

from datetime import timedelta

import pytest

from story_clusters.curation import (
    build_curated_citations,
    clamp_max_citations,
    is_press_release_driven,
    rank_candidates,
    story_feed_score,
    summarize_curation_from_links,
    to_candidate,
)
from story_clusters.nlp import normalize_text
from story_clusters.roles import source_role_score_adjustment
from story_clusters.types import ClusterMember, CongestionEvaluation, StoryCluster, StoryRecord


@pytest.fixture
def make_cluster(make_article):
    def _make(rows: list[dict]) -> StoryCluster:
        members = []
        for i, row in enumerate(rows):
            row = dict(row)
            article = make_article(row.pop("id"), row.pop("title"), **row)
            members.append(ClusterMember(article=article, similarity=1.0 if i == 0 else 0.84, is_representative=i == 0))
        return StoryCluster(cluster_key="cluster", representative=members[0].article, members=tuple(members))

    return _make


def _roles(citations) -> list[str]:
    return [c.source_role for c in citations]


class TestClampMaxCitations:
    def test_clamps_to_bounds(self) -> None:
        assert clamp_max_citations(1) == 3
        assert clamp_max_citations(40) == 16
        assert clamp_max_citations(7) == 7
        assert clamp_max_citations(None) == 10


class TestPressReleaseDetection:
    def test_requires_an_official_candidate(self, make_cluster, registry) -> None:
        cluster = make_cluster([{"id": "a", "title": "Navy awards contract", "source_id": "defense-news"}])
        candidates = [to_candidate(m, registry) for m in cluster.members]
        assert is_press_release_driven(cluster, candidates) is False

    def test_official_share_alone_is_enough(self, make_cluster, registry) -> None:
        cluster = make_cluster(
            [
                {"id": "a", "title": "Carrier group heads east", "source_id": "defense-news"},
                {"id": "b", "title": "Carrier group update", "source_id": "dod-releases"},
                {"id": "c", "title": "Carrier group moves", "source_id": "breaking-defense"},
            ]
        )
        candidates = [to_candidate(m, registry) for m in cluster.members]
        assert is_press_release_driven(cluster, candidates) is True


class TestBuildCuratedCitations:
    def test_press_release_driven_story_keeps_official_source(self, make_cluster, registry) -> None:
        cluster = make_cluster(
            [
                {
                    "id": "a1",
                    "title": "DoD awards missile defense contract",
                    "source_id": "dod-releases",
                    "source_name": "U.S. Department of Defense Releases",
                },
                {"id": "a2", "title": "Defense News tracks missile award", "source_id": "defense-news", "source_name": "Defense News"},
                {"id": "a3", "title": "Breaking Defense reviews impacts", "source_id": "breaking-defense", "source_name": "Breaking Defense"},
            ]
        )

        citations, summary = build_curated_citations(cluster, max_citations=6, registry=registry)

        assert summary.press_release_driven is True
        assert summary.has_official_source is True
        assert "official" in _roles(citations)
        assert summary.reporting_count == 2
        assert summary.source_diversity == 3

    def test_opinion_only_cluster_yields_one_opinion_citation(self, make_cluster, registry) -> None:
        cluster = make_cluster(
            [
                {"id": f"b{i}", "title": f"Opinion: modernization take {i}", "source_id": "real-clear-defense", "source_name": "RealClearDefense"}
                for i in range(3)
            ]
        )

        citations, summary = build_curated_citations(cluster, max_citations=6, registry=registry)

        assert _roles(citations) == ["opinion"]
        assert summary.opinion_count == 1
        assert summary.opinion_limited is True

    def test_opinion_limited_to_one_across_sources(self, make_article, registry) -> None:
        members = [
            ClusterMember(make_article("r", "Defense One reports timeline", source_id="defense-one", source_name="Defense One"), 1.0, True),
            ClusterMember(make_article("o1", "Why the bet is flawed", source_id="real-clear-defense", source_name="RealClearDefense"), 0.8, False),
            ClusterMember(make_article("o2", "Op-ed: a second take", source_id="the-war-zone", source_name="The War Zone"), 0.8, False),
            ClusterMember(make_article("o3", "Guest essay on the same", source_badge="Opinion", source_id="blog", source_name="Blog"), 0.8, False),
        ]
        cluster = StoryCluster("k", members[0].article, tuple(members))

        citations, summary = build_curated_citations(cluster, max_citations=10, registry=registry)

        assert _roles(citations).count("opinion") == 1
        assert _roles(citations)[0] == "reporting"
        assert summary.opinion_limited is True

    def test_sources_are_never_repeated(self, make_cluster, registry) -> None:
        cluster = make_cluster(
            [
                {"id": "a", "title": "Story one", "source_id": "defense-news", "source_name": "Defense News"},
                {"id": "b", "title": "Story two", "source_id": "defense-news", "source_name": "Defense  news"},
                {"id": "c", "title": "Story three", "source_id": "defense-one", "source_name": "Defense One"},
                {"id": "d", "title": "Story four", "source_id": "csis", "source_name": "CSIS"},
                {"id": "e", "title": "Story five", "source_id": "war-on-the-rocks", "source_name": "War on the Rocks"},
            ]
        )

        citations, summary = build_curated_citations(cluster, max_citations=10, registry=registry)

        names = [normalize_text(c.source_name) for c in citations]
        assert len(names) == len(set(names)) == 4
        assert summary.source_diversity == 4
        assert summary.analysis_count == 2

    def test_citation_count_respects_budget(self, make_article, registry) -> None:
        members = [
            ClusterMember(
                make_article(f"a{i}", f"Report {i}", source_id=f"outlet-{i}", source_name=f"Outlet {i}"),
                1.0 if i == 0 else 0.9,
                i == 0,
            )
            for i in range(25)
        ]
        cluster = StoryCluster("k", members[0].article, tuple(members))

        for requested, expected in ((1, 3), (5, 5), (50, 16)):
            citations, _ = build_curated_citations(cluster, max_citations=requested, registry=registry)
            assert len(citations) == expected

    def test_reporting_ranked_by_quality_then_representative(self, make_cluster, registry) -> None:
        cluster = make_cluster(
            [
                {"id": "rep", "title": "Lead story", "source_id": "the-war-zone", "source_name": "The War Zone"},
                {"id": "hq", "title": "High quality story", "source_id": "defense-one", "source_name": "Defense One"},
                {"id": "unk", "title": "Unknown outlet story", "source_id": "local-paper", "source_name": "Local Paper"},
            ]
        )

        citations, _ = build_curated_citations(cluster, max_citations=3, registry=registry)

        # high (1.25) first; medium ties broken by the representative flag
        assert [c.article_id for c in citations] == ["hq", "rep", "unk"]

    def test_citation_fields(self, make_cluster, registry) -> None:
        cluster = make_cluster([{"id": "a", "title": "Lead story", "source_id": "defense-one", "source_name": "Defense One"}])
        citations, _ = build_curated_citations(cluster, registry=registry)
        c = citations[0]
        assert (c.article_id, c.headline, c.source_name, c.url, c.source_role) == (
            "a",
            "Lead story",
            "Defense One",
            "https://example.com/a",
            "reporting",
        )

    def test_empty_cluster(self, make_article) -> None:
        cluster = StoryCluster("k", make_article("a"), ())
        citations, summary = build_curated_citations(cluster)
        assert citations == []
        assert summary.source_diversity == 0
        assert summary.opinion_limited is False

    def test_rank_candidates_orders_roles(self, make_cluster, registry) -> None:
        cluster = make_cluster(
            [
                {"id": "op", "title": "Commentary piece", "source_id": "defense-news"},
                {"id": "an", "title": "Analysis piece", "source_id": "csis"},
                {"id": "of", "title": "Release", "source_id": "dod-releases"},
                {"id": "re", "title": "Report", "source_id": "breaking-defense"},
            ]
        )
        ranked = rank_candidates(to_candidate(m, registry) for m in cluster.members)
        assert [c.article.id for c in ranked] == ["re", "of", "an", "op"]


class TestSummaries:
    def test_summarize_curation_from_links(self) -> None:
        summary = summarize_curation_from_links(
            [
                {"source_role": "reporting", "source_name": "Defense News"},
                {"source_role": None, "source_name": "defense news"},
                {"source_role": "official", "source_name": "DoD"},
            ],
            press_release_driven=True,
        )
        assert summary.reporting_count == 2
        assert summary.official_count == 1
        assert summary.has_official_source is True
        assert summary.press_release_driven is True
        assert summary.source_diversity == 2

    def test_role_score_adjustment(self) -> None:
        assert source_role_score_adjustment("reporting") > source_role_score_adjustment("official")
        assert source_role_score_adjustment("opinion") < 0
        assert source_role_score_adjustment("unknown") == 0

    def test_summary_matches_summary_rebuilt_from_stored_links(self, make_cluster, registry) -> None:
        cluster = make_cluster(
            [
                {"id": "a", "title": "Navy awards contract", "source_id": "defense-news", "source_name": "Defense News"},
                {"id": "b", "title": "Navy contract explained", "source_id": "csis", "source_name": "CSIS"},
                {"id": "c", "title": "Opinion: a bad deal", "source_id": "real-clear-defense", "source_name": "RealClearDefense"},
            ]
        )
        citations, summary = build_curated_citations(cluster, registry=registry)
        links = [{"source_role": c.source_role, "source_name": c.source_name} for c in citations]

        rebuilt = summarize_curation_from_links(
            links,
            press_release_driven=summary.press_release_driven,
            opinion_limited=summary.opinion_limited,
        )

        assert rebuilt == summary


class TestStoryFeedScore:
    def _record(self, cluster, registry, *, score: float, congested: bool) -> StoryRecord:
        citations, curation = build_curated_citations(cluster, registry=registry)
        congestion = CongestionEvaluation(
            article_count=len(cluster.members),
            unique_sources=len(cluster.members),
            congestion_score=score,
            is_congested=congested,
        )
        return StoryRecord(cluster=cluster, congestion=congestion, citations=tuple(citations), curation=curation)

    def test_components(self, make_cluster, registry, now) -> None:
        cluster = make_cluster([{"id": "a", "title": "Navy awards contract", "source_id": "defense-one"}])
        record = self._record(cluster, registry, score=0.25, congested=False)

        published_ms = int((now - timedelta(hours=2)).timestamp() * 1000)
        # one citation, congestion 0.25, reporting lead, one reporting link
        assert story_feed_score(record) == published_ms + 1_000 + 2_500 + 3_200 + 450

    def test_reporting_lead_outranks_opinion_lead(self, make_cluster, registry) -> None:
        reporting = make_cluster([{"id": "a", "title": "Navy awards contract", "source_id": "defense-one"}])
        opinion = make_cluster([{"id": "b", "title": "Why the deal is wrong", "source_id": "real-clear-defense"}])

        assert story_feed_score(self._record(reporting, registry, score=0.0, congested=False)) > story_feed_score(
            self._record(opinion, registry, score=0.0, congested=False)
        )

    def test_congestion_boost(self, make_cluster, registry) -> None:
        cluster = make_cluster([{"id": "a", "title": "Navy awards contract", "source_id": "defense-one"}])
        calm = self._record(cluster, registry, score=0.5, congested=False)
        busy = self._record(cluster, registry, score=0.5, congested=True)
        assert story_feed_score(busy) - story_feed_score(calm) == 5_000
