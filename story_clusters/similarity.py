from __future__ import annotations

from typing import Mapping, Optional, Sequence

import numpy as np

from story_clusters.nlp import tokenize_title
from story_clusters.types import Article


EMBEDDING_WEIGHT = 0.45
LEXICAL_WEIGHT_WITH_EMBEDDING = 0.35
TOPIC_WEIGHT_WITH_EMBEDDING = 0.20
LEXICAL_WEIGHT = 0.7
TOPIC_WEIGHT = 0.3


def jaccard_similarity(left: frozenset[str] | set[str], right: frozenset[str] | set[str]) -> float:
    if not left or not right:
        return 0.0
    inter = len(left & right)
    union = len(left) + len(right) - inter
    if union <= 0:
        return 0.0
    return inter / union


def cosine_similarity(left: Optional[Sequence[float]], right: Optional[Sequence[float]]) -> float:
    if left is None or right is None:
        return 0.0
    a = np.asarray(left, dtype=np.float64)
    b = np.asarray(right, dtype=np.float64)
    if a.size == 0 or b.size == 0 or a.shape != b.shape:
        return 0.0
    na = float(np.linalg.norm(a))
    nb = float(np.linalg.norm(b))
    if not (na > 0.0 and nb > 0.0):
        return 0.0
    sim = float(np.dot(a, b) / (na * nb))
    return sim if np.isfinite(sim) else 0.0


def topic_similarity(left: Article, right: Article) -> float:
    return jaccard_similarity({t.slug for t in left.topics}, {t.slug for t in right.topics})


class SimilarityScorer:
    """Blends title overlap, topic overlap and (when both sides have one) embedding cosine.

    Title tokens are cached per article object, so two distinct articles that
    happen to share an id never share tokens. Embeddings come from a lookup
    table filled before any scoring starts.
    """

    def __init__(self, embeddings: Mapping[str, Sequence[float]] | None = None) -> None:
        self._embeddings = dict(embeddings or {})
        self._tokens: dict[int, tuple[Article, frozenset[str]]] = {}

    def _title_tokens(self, article: Article) -> frozenset[str]:
        entry = self._tokens.get(id(article))
        # the stored article keeps its id() from being reused while cached
        if entry is not None and entry[0] is article:
            return entry[1]
        toks = tokenize_title(article.title)
        self._tokens[id(article)] = (article, toks)
        return toks

    def embedding_for(self, article: Article) -> Optional[Sequence[float]]:
        return self._embeddings.get(article.id)

    def score(self, a: Article, b: Article) -> float:
        lexical = jaccard_similarity(self._title_tokens(a), self._title_tokens(b))
        topic = topic_similarity(a, b)

        ea = self.embedding_for(a)
        eb = self.embedding_for(b)
        if ea is None or eb is None:
            s = LEXICAL_WEIGHT * lexical + TOPIC_WEIGHT * topic
        else:
            s = (
                EMBEDDING_WEIGHT * cosine_similarity(ea, eb)
                + LEXICAL_WEIGHT_WITH_EMBEDDING * lexical
                + TOPIC_WEIGHT_WITH_EMBEDDING * topic
            )
        if not np.isfinite(s):
            return 0.0
        return float(max(0.0, min(1.0, s)))
