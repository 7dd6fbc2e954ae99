from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Iterable

import pandas as pd

from story_clusters.curation import story_feed_score
from story_clusters.types import StoryRecord


def read_records(path: Path) -> list[dict[str, Any]]:
    suffix = path.suffix.lower()
    if suffix == ".parquet":
        df = pd.read_parquet(path)
    elif suffix in {".csv", ".txt"}:
        df = pd.read_csv(path, dtype=str)
    elif suffix == ".json":
        df = pd.read_json(path, convert_dates=False, dtype=False)
    else:
        df = pd.read_json(path, lines=True, convert_dates=False, dtype=False)
    return df.to_dict(orient="records")


def story_record_to_dict(record: StoryRecord) -> dict[str, Any]:
    cluster = record.cluster
    return {
        "cluster_key": cluster.cluster_key,
        "representative_article_id": cluster.representative.id,
        "headline": cluster.representative.title,
        "topic_label": cluster.topic_label,
        "members": [
            {
                "article_id": m.article.id,
                "source_name": m.article.source_name,
                "url": m.article.url,
                "similarity": m.similarity,
                "is_representative": m.is_representative,
            }
            for m in cluster.members
        ],
        "congestion": asdict(record.congestion),
        "citations": [asdict(c) for c in record.citations],
        "curation": asdict(record.curation),
    }


def article_assignments(records: Iterable[StoryRecord]) -> dict[str, dict[str, Any]]:
    """article id -> the cluster it landed in and whether that cluster is congested."""

    out: dict[str, dict[str, Any]] = {}
    for r in records:
        for m in r.cluster.members:
            out[m.article.id] = {
                "cluster_key": r.cluster.cluster_key,
                "is_congested": r.congestion.is_congested,
            }
    return out


def assignments_to_frame(records: Iterable[StoryRecord]) -> pd.DataFrame:
    rows = [{"article_id": article_id, **info} for article_id, info in article_assignments(records).items()]
    return pd.DataFrame(rows, columns=["article_id", "cluster_key", "is_congested"])


def stories_to_frame(records: Iterable[StoryRecord]) -> pd.DataFrame:
    rows = []
    for r in records:
        rows.append(
            {
                "cluster_key": r.cluster.cluster_key,
                "headline": r.cluster.representative.title,
                "topic_label": r.cluster.topic_label,
                "member_count": len(r.cluster.members),
                "citation_count": len(r.citations),
                "article_count_window": r.congestion.article_count,
                "unique_sources_window": r.congestion.unique_sources,
                "congestion_score": r.congestion.congestion_score,
                "is_congested": r.congestion.is_congested,
                "press_release_driven": r.curation.press_release_driven,
                "source_diversity": r.curation.source_diversity,
                "feed_score": story_feed_score(r),
            }
        )
    return pd.DataFrame(rows)


def write_story_records(path: Path, records: Iterable[StoryRecord]) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, "w", encoding="utf-8") as f:
        for r in records:
            f.write(json.dumps(story_record_to_dict(r), ensure_ascii=False, default=str) + "\n")
            count += 1
    return count


def write_frame(path: Path, df: pd.DataFrame) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() == ".parquet":
        df.to_parquet(path, index=False)
        return
    df.to_csv(path, index=False, encoding="utf-8")
