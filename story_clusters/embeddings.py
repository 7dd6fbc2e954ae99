from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional, Protocol, Sequence

import numpy as np

from story_clusters.http import HttpClient
from story_clusters.sanitize import sanitize_plain_text
from story_clusters.types import Article


logger = logging.getLogger(__name__)

DEFAULT_MAX_EMBEDDING_ARTICLES = 120
DEFAULT_MAX_INPUT_CHARS = 3500
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBEDDING_ENDPOINT = "https://api.openai.com/v1/embeddings"


class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> Optional[list[float]]:
        ...


def coerce_embedding(value: Any) -> Optional[list[float]]:
    """Accept a list/tuple/array (or its JSON string) of finite numbers; anything else is unavailable."""

    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return None
    if hasattr(value, "tolist"):
        value = value.tolist()
    if not isinstance(value, (list, tuple)) or not value:
        return None
    try:
        arr = np.asarray(value, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    # NaN or inf counts as a malformed payload
    if arr.ndim != 1 or not np.isfinite(arr).all():
        return None
    return arr.tolist()


def embedding_input(article: Article, max_chars: int = DEFAULT_MAX_INPUT_CHARS) -> str:
    body = article.summary or article.full_text_excerpt or ""
    text = sanitize_plain_text(f"{article.title or ''}. {body}")
    if text == ".":
        return ""
    return text[:max_chars]


def select_embedding_articles(articles: Sequence[Article], max_articles: int = DEFAULT_MAX_EMBEDDING_ARTICLES) -> list[Article]:
    """The most recent articles by effective timestamp, capped to bound provider cost."""

    limit = max(1, int(max_articles))
    ranked = sorted(articles, key=lambda a: a.effective_at, reverse=True)
    return ranked[:limit]


class OpenAIEmbeddingProvider:
    """Embeddings from an OpenAI-compatible /v1/embeddings endpoint."""

    def __init__(
        self,
        client: HttpClient,
        *,
        model: str = DEFAULT_EMBEDDING_MODEL,
        endpoint: str = DEFAULT_EMBEDDING_ENDPOINT,
    ) -> None:
        self._client = client
        self._model = model
        self._endpoint = endpoint

    async def embed(self, text: str) -> Optional[list[float]]:
        payload = await self._client.post_json(self._endpoint, {"model": self._model, "input": text})
        if not isinstance(payload, dict):
            return None
        try:
            vector = payload["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError):
            return None
        return coerce_embedding(vector)


async def fetch_embeddings(
    articles: Sequence[Article],
    provider: Optional[EmbeddingProvider],
    *,
    max_articles: int = DEFAULT_MAX_EMBEDDING_ARTICLES,
    max_in_flight: int = 4,
    max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
) -> dict[str, list[float]]:
    """Fetch vectors for the newest articles; failures just leave an article out of the table."""

    if provider is None or not articles:
        return {}

    selected = select_embedding_articles(articles, max_articles)
    sem = asyncio.Semaphore(max(1, int(max_in_flight)))
    out: dict[str, list[float]] = {}

    async def worker(a: Article) -> None:
        text = embedding_input(a, max_input_chars)
        if not text:
            return
        async with sem:
            try:
                vector = await provider.embed(text)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Embedding lookup failed for article %s: %s", a.id, exc)
                return
        vector = coerce_embedding(vector)
        if vector:
            out[a.id] = vector

    await asyncio.gather(*(worker(a) for a in selected))

    logger.info("Fetched embeddings for %d of %d candidate articles", len(out), len(selected))
    return out
