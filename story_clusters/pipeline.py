from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

import aiohttp

from story_clusters.clustering import DEFAULT_THRESHOLD, DEFAULT_WINDOW_HOURS, build_story_clusters
from story_clusters.config import Config, load_config
from story_clusters.congestion import CongestionRules, evaluate_cluster_congestion
from story_clusters.curation import DEFAULT_MAX_CITATIONS, build_curated_citations
from story_clusters.embeddings import (
    DEFAULT_MAX_EMBEDDING_ARTICLES,
    DEFAULT_MAX_INPUT_CHARS,
    EmbeddingProvider,
    OpenAIEmbeddingProvider,
    fetch_embeddings,
)
from story_clusters.http import HttpClient
from story_clusters.ingest import records_to_articles
from story_clusters.sources import SourceRegistry, StaticSourceRegistry
from story_clusters.storage import (
    assignments_to_frame,
    read_records,
    stories_to_frame,
    write_frame,
    write_story_records,
)
from story_clusters.types import Article, StoryRecord


logger = logging.getLogger(__name__)


async def cluster_batch(
    articles: Sequence[Article],
    *,
    provider: Optional[EmbeddingProvider] = None,
    registry: Optional[SourceRegistry] = None,
    threshold: float = DEFAULT_THRESHOLD,
    window_hours: float = DEFAULT_WINDOW_HOURS,
    max_embedding_articles: int = DEFAULT_MAX_EMBEDDING_ARTICLES,
    max_in_flight: int = 4,
    max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
    max_citations: int = DEFAULT_MAX_CITATIONS,
    congestion_rules: Optional[CongestionRules] = None,
    now: Optional[datetime] = None,
) -> list[StoryRecord]:
    """Embed (optionally), cluster, then score and curate every cluster of one batch."""

    if not articles:
        logger.warning("No articles to cluster")
        return []

    # 1) Embeddings: one bounded async phase, finished before any scoring.
    embeddings = await fetch_embeddings(
        articles,
        provider,
        max_articles=max_embedding_articles,
        max_in_flight=max_in_flight,
        max_input_chars=max_input_chars,
    )

    # 2) Clustering (synchronous, no I/O)
    clusters = build_story_clusters(
        articles,
        embeddings=embeddings,
        registry=registry,
        threshold=threshold,
        window_hours=window_hours,
    )

    # 3) Congestion + citations per cluster
    records: list[StoryRecord] = []
    for c in clusters:
        if not c.members:
            continue
        congestion = evaluate_cluster_congestion(c, now=now, rules=congestion_rules)
        citations, curation = build_curated_citations(c, max_citations, registry)
        records.append(
            StoryRecord(cluster=c, congestion=congestion, citations=tuple(citations), curation=curation)
        )

    congested = sum(1 for r in records if r.congestion.is_congested)
    logger.info("Curated %d story clusters (%d congested)", len(records), congested)
    return records


async def run_pipeline(
    config_path: str | Path | None,
    sources_path: str | Path | None,
    input_path: str | Path,
    *,
    now: Optional[datetime] = None,
    use_embeddings: bool = True,
    persist: bool = True,
    quiet: bool = False,
    threshold: Optional[float] = None,
    window_hours: Optional[float] = None,
    max_citations: Optional[int] = None,
) -> list[StoryRecord]:
    cfg = load_config(config_path)
    registry = StaticSourceRegistry.from_yaml(sources_path) if sources_path else StaticSourceRegistry()
    articles = records_to_articles(read_records(Path(input_path)))
    logger.info("Loaded %d articles and %d known sources", len(articles), len(registry))

    kwargs = dict(
        registry=registry,
        threshold=cfg.similarity_threshold if threshold is None else float(threshold),
        window_hours=cfg.window_hours if window_hours is None else float(window_hours),
        max_embedding_articles=cfg.max_embedding_articles,
        max_in_flight=cfg.max_in_flight_requests,
        max_input_chars=cfg.max_input_chars,
        max_citations=cfg.max_citations if max_citations is None else int(max_citations),
        congestion_rules=cfg.congestion_rules,
        now=now,
    )

    api_key = cfg.embedding_api_key
    if use_embeddings and cfg.embeddings_enabled and api_key and articles:
        records = await _run_with_openai(cfg, api_key, articles, kwargs)
    else:
        if use_embeddings and cfg.embeddings_enabled and not api_key:
            logger.info("No embedding API key configured; scoring on titles and topics only")
        records = await cluster_batch(articles, **kwargs)

    if persist and records:
        out_path = cfg.output_file
        written = write_story_records(out_path, records)
        write_frame(out_path.with_name(out_path.stem + "_summary.csv"), stories_to_frame(records))
        write_frame(out_path.with_name(out_path.stem + "_assignments.csv"), assignments_to_frame(records))
        logger.info("Wrote %d story records to %s", written, out_path)

    if not quiet:
        congested = sum(1 for r in records if r.congestion.is_congested)
        print(f"Articles: {len(articles)} | Clusters: {len(records)} | Congested: {congested}")
        if persist and records:
            print(f"Output: {cfg.output_file}")

    return records


async def _run_with_openai(
    cfg: Config,
    api_key: str,
    articles: Sequence[Article],
    kwargs: dict,
) -> list[StoryRecord]:
    connector = aiohttp.TCPConnector(limit=cfg.max_in_flight_requests)
    async with aiohttp.ClientSession(connector=connector) as session:
        client = HttpClient(
            session=session,
            semaphore=asyncio.Semaphore(cfg.max_in_flight_requests),
            user_agent=cfg.user_agent,
            timeout_seconds=cfg.embedding_timeout_seconds,
            headers={"Authorization": f"Bearer {api_key}"},
        )
        provider = OpenAIEmbeddingProvider(client, model=cfg.embedding_model, endpoint=cfg.embedding_endpoint)
        return await cluster_batch(articles, provider=provider, **kwargs)
