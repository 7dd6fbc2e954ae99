"""CLI for clustering an article batch into curated story records."""

from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime

from dotenv import load_dotenv

from story_clusters.ingest import parse_datetime
from story_clusters.pipeline import run_pipeline


def _parse_now(value: str) -> datetime:
    dt = parse_datetime(value)
    if dt is None:
        raise argparse.ArgumentTypeError("now must be an ISO-8601 timestamp")
    return dt


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="story-clusters")

    # Input options
    parser.add_argument("--input", required=True, help="Article batch (.jsonl, .json, .csv or .parquet)")
    parser.add_argument("--config", default="config/config.yaml", help="Run configuration YAML")
    parser.add_argument("--sources", default="config/sources.yaml", help="Source registry YAML")
    parser.add_argument(
        "--now",
        type=_parse_now,
        default=None,
        help="Reference time for congestion windows (default: current UTC time)",
    )

    # Clustering options
    parser.add_argument("--threshold", type=float, default=None, help="Similarity threshold (default: from config, 0.72)")
    parser.add_argument("--window-hours", type=float, default=None, help="Pairing window in hours (default: from config, 48)")
    parser.add_argument("--max-citations", type=int, default=None, help="Citations per cluster, clamped to 3-16")
    parser.add_argument("--no-embeddings", action="store_true", help="Score on titles and topics only")

    # Output options
    parser.add_argument("--no-save", action="store_true", help="Do not write story records")
    parser.add_argument("--quiet", action="store_true")
    parser.add_argument("--log-level", default="INFO")
    return parser


def main() -> None:
    args = build_parser().parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s - %(levelname)s - %(message)s")
    load_dotenv()

    asyncio.run(
        run_pipeline(
            args.config,
            args.sources,
            args.input,
            now=args.now,
            use_embeddings=not args.no_embeddings,
            persist=not args.no_save,
            quiet=args.quiet,
            threshold=args.threshold,
            window_hours=args.window_hours,
            max_citations=args.max_citations,
        )
    )


if __name__ == "__main__":
    main()
