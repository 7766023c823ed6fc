"""
Evidence retrieval by vector similarity.

For every criterion the engine needs the handful of profile chunks
that are closest to the criterion's embedding.  A `ProfileIndex` holds
the chunks of one profile and their embeddings for the duration of a
single match; it is a context manager and drops its corpus on exit so
nothing leaks between requests.  Similarity is plain cosine similarity
computed with scikit-learn over a numpy matrix.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity

logger = logging.getLogger(__name__)


class ProfileIndex:
    """Request-scoped similarity index over the chunks of one profile.

    Args:
        chunks: Evidence texts, in profile order.
        embeddings: One vector per chunk, aligned with ``chunks``.
    """

    def __init__(self, chunks: Sequence[str], embeddings: Sequence[Sequence[float]]) -> None:
        if len(chunks) != len(embeddings):
            raise ValueError(f"Got {len(chunks)} chunks but {len(embeddings)} embeddings")
        self._chunks: List[str] = list(chunks)
        self._embeddings: List[Sequence[float]] = list(embeddings)
        self._matrix: Optional[np.ndarray] = None
        self.closed = False

    def __enter__(self) -> "ProfileIndex":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._chunks)

    def close(self) -> None:
        self._chunks = []
        self._embeddings = []
        self._matrix = None
        self.closed = True

    def _similarities(self, query: Sequence[float]) -> np.ndarray:
        if self._matrix is None:
            self._matrix = np.asarray(self._embeddings, dtype=float)
        vector = np.asarray(query, dtype=float).reshape(1, -1)
        sims = cosine_similarity(vector, self._matrix)[0]
        if not np.all(np.isfinite(sims)):
            raise ValueError("non-finite similarity score")
        return sims

    def search(
        self,
        query: Optional[Sequence[float]],
        top_k: int = 3,
        min_similarity: Optional[float] = None,
    ) -> List[str]:
        """Return up to ``top_k`` distinct chunks most similar to ``query``.

        Ties keep profile order.  Duplicate texts among the top hits are
        collapsed, so fewer than ``top_k`` chunks may come back.  A
        missing query embedding yields no evidence.  If the similarity
        computation itself fails the first chunk is returned instead.

        Args:
            query: Criterion embedding, or ``None`` if it has none.
            top_k: Number of nearest chunks to consider.
            min_similarity: Optional floor; hits below it are dropped.
        """
        if self.closed:
            raise RuntimeError("ProfileIndex has been closed")
        if query is None or len(query) == 0 or not self._chunks:
            return []
        try:
            sims = self._similarities(query)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Similarity search failed, falling back to first chunk: %s", exc)
            return self._chunks[:1]
        order = np.argsort(-sims, kind="stable")[:top_k]
        results: List[str] = []
        seen = set()
        for idx in order:
            if min_similarity is not None and sims[idx] < min_similarity:
                continue
            text = self._chunks[idx]
            if text in seen:
                continue
            seen.add(text)
            results.append(text)
        logger.debug(
            "Retrieved %d chunks (best similarity %.3f)", len(results), float(sims[order[0]]) if len(order) else 0.0
        )
        return results
