from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from story_clusters.congestion import CongestionRules


@dataclass(frozen=True)
class Config:
    raw: dict[str, Any]

    def _section(self, name: str) -> dict[str, Any]:
        return self.raw.get(name, {}) or {}

    @property
    def similarity_threshold(self) -> float:
        return float(self._section("clustering").get("similarity_threshold", 0.72))

    @property
    def window_hours(self) -> float:
        return float(self._section("clustering").get("window_hours", 48))

    @property
    def embeddings_enabled(self) -> bool:
        return bool(self._section("embeddings").get("enabled", True))

    @property
    def embedding_endpoint(self) -> str:
        return str(self._section("embeddings").get("endpoint", "https://api.openai.com/v1/embeddings"))

    @property
    def embedding_model(self) -> str:
        return str(self._section("embeddings").get("model", "text-embedding-3-small"))

    @property
    def embedding_api_key(self) -> Optional[str]:
        env_name = str(self._section("embeddings").get("api_key_env", "OPENAI_API_KEY"))
        return os.environ.get(env_name) or None

    @property
    def max_embedding_articles(self) -> int:
        return max(1, int(self._section("embeddings").get("max_articles", 120)))

    @property
    def max_in_flight_requests(self) -> int:
        return max(1, int(self._section("embeddings").get("max_in_flight_requests", 4)))

    @property
    def embedding_timeout_seconds(self) -> float:
        return float(self._section("embeddings").get("timeout_seconds", 20))

    @property
    def max_input_chars(self) -> int:
        return int(self._section("embeddings").get("max_input_chars", 3500))

    @property
    def user_agent(self) -> str:
        return str(self._section("embeddings").get("user_agent", "story-clusters/0.1"))

    @property
    def congestion_rules(self) -> CongestionRules:
        c = self._section("congestion")
        return CongestionRules(
            min_articles=int(c.get("min_articles", 10)),
            min_sources=int(c.get("min_sources", 6)),
            window_hours=float(c.get("window_hours", 24)),
        )

    @property
    def max_citations(self) -> int:
        # clamped by the curator
        return int(self._section("curation").get("max_citations", 10))

    @property
    def output_dir(self) -> Path:
        return Path(str(self._section("storage").get("output_dir", "data")))

    @property
    def output_file(self) -> Path:
        name = self._section("storage").get("output_file") or "story_clusters.jsonl"
        return self.output_dir / str(name)


def load_yaml(path: str | Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config(path: str | Path | None) -> Config:
    if path is None:
        return Config(raw={})
    return Config(raw=load_yaml(path))
