"""
Embedding provider abstractions.

An embedding provider maps a batch of texts to fixed-dimension
vectors, one per text and in the same order.  Concrete providers wrap
the OpenAI embeddings API and the Gemini (Google Generative AI)
``embed_content`` call.  A deterministic hashing provider is used when
no API key is configured; it needs no network and is good enough for
offline runs and tests, although it only captures token overlap.

Provider selection mirrors the LLM judge providers: the
``EMBEDDING_PROVIDER`` environment variable wins, then whichever API
key is available, then the hashing fallback.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9+#]+")


class EmbeddingProvider(ABC):
    """Abstract base class for embedding providers."""

    @abstractmethod
    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed a batch of non-empty texts.

        Args:
            texts: Texts to embed.

        Returns:
            One vector per text, in input order.
        """
        raise NotImplementedError


class HashingEmbeddingProvider(EmbeddingProvider):
    """Offline provider that hashes tokens into a fixed size vector.

    Each token contributes a signed, deterministic pattern derived from
    its MD5 digest.  Texts sharing tokens end up with similar vectors.
    """

    def __init__(self, dim: int = 64) -> None:
        if dim < 1:
            raise ValueError("dim must be positive")
        self.dim = dim

    def _embed_text(self, text: str) -> List[float]:
        vector = [0.0] * self.dim
        for token in _TOKEN_RE.findall(text.lower()):
            h = hashlib.md5(token.encode("utf-8")).hexdigest()
            base = int(h[:8], 16) / 0xFFFFFFFF
            for i in range(self.dim):
                rotated = (base * (i + 1)) % 1.0
                vector[i] += rotated * 2.0 - 1.0
        norm = sum(v * v for v in vector) ** 0.5 or 1.0
        return [v / norm for v in vector]

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        return [self._embed_text(text) for text in texts]


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Provider that uses the OpenAI embeddings API."""

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        try:
            from openai import OpenAI  # type: ignore
        except ImportError as exc:
            raise RuntimeError(
                "openai package is required for OpenAIEmbeddingProvider. Install it via pip."
            ) from exc
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY not provided")
        self.model = model or os.getenv("OPENAI_EMBEDDING_MODEL") or "text-embedding-3-small"
        self.client = OpenAI(api_key=self.api_key)

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        response = self.client.embeddings.create(model=self.model, input=list(texts))
        data = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in data]


class GeminiEmbeddingProvider(EmbeddingProvider):
    """Provider that uses Gemini embeddings via google‑generativeai."""

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        try:
            import google.generativeai as genai  # type: ignore
        except ImportError as exc:
            raise RuntimeError(
                "google-generativeai package is required for GeminiEmbeddingProvider. Install it via pip."
            ) from exc
        self.genai = genai
        self.api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY/GOOGLE_API_KEY not provided")
        self.model = model or os.getenv("GEMINI_EMBEDDING_MODEL") or "models/gemini-embedding-001"
        self.genai.configure(api_key=self.api_key)

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        result = self.genai.embed_content(
            model=self.model,
            content=list(texts),
            task_type="semantic_similarity",
        )
        embeddings = result["embedding"]
        # A single text comes back as a flat vector.
        if embeddings and not isinstance(embeddings[0], (list, tuple)):
            embeddings = [embeddings]
        return [list(vector) for vector in embeddings]


def get_default_embedding_provider() -> EmbeddingProvider:
    """Return an EmbeddingProvider based on configuration and API keys.

    The resolution order is:

    1. ``EMBEDDING_PROVIDER`` set to ``"openai"``, ``"gemini"`` or
       ``"hashing"``.  If the named provider cannot be initialised a
       warning is logged and automatic detection is used.
    2. ``OPENAI_API_KEY`` present: :class:`OpenAIEmbeddingProvider`.
    3. ``GEMINI_API_KEY`` or ``GOOGLE_API_KEY`` present:
       :class:`GeminiEmbeddingProvider`.
    4. Otherwise :class:`HashingEmbeddingProvider`.
    """
    preferred: Optional[str] = os.getenv("EMBEDDING_PROVIDER")
    if preferred:
        pref = preferred.lower()
        if pref == "openai":
            try:
                return OpenAIEmbeddingProvider()
            except Exception as exc:  # noqa: BLE001
                logger.warning("EMBEDDING_PROVIDER=openai but failed to initialise OpenAIEmbeddingProvider: %s", exc)
        elif pref == "gemini":
            try:
                return GeminiEmbeddingProvider()
            except Exception as exc:  # noqa: BLE001
                logger.warning("EMBEDDING_PROVIDER=gemini but failed to initialise GeminiEmbeddingProvider: %s", exc)
        elif pref == "hashing":
            logger.info("EMBEDDING_PROVIDER=hashing; using hashing embeddings")
            return HashingEmbeddingProvider()
        else:
            logger.warning("Unknown EMBEDDING_PROVIDER value '%s'; falling back to automatic detection", preferred)
    if os.getenv("OPENAI_API_KEY"):
        try:
            return OpenAIEmbeddingProvider()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to initialise OpenAIEmbeddingProvider: %s", exc)
    if os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY"):
        try:
            return GeminiEmbeddingProvider()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to initialise GeminiEmbeddingProvider: %s", exc)
    logger.info("No embedding API keys found; using hashing embeddings")
    return HashingEmbeddingProvider()
