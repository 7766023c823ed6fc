"""
Embedding gateway.

The single entry point the engine uses to embed text.  It enforces the
contract the rest of the pipeline relies on: blank inputs are dropped
before the provider is called, output order follows input order, every
vector has the same dimensionality, and any provider failure surfaces
as `EmbeddingProviderError`.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Union

from ..errors import EmbeddingProviderError
from .providers import EmbeddingProvider, get_default_embedding_provider

logger = logging.getLogger(__name__)


class EmbeddingGateway:
    """Validating wrapper around an `EmbeddingProvider`.

    Args:
        provider: Backend to delegate to.  Defaults to
            :func:`get_default_embedding_provider`.
        dimension: Expected vector length.  When omitted it is fixed by
            the first successful call and enforced afterwards.
    """

    def __init__(self, provider: Optional[EmbeddingProvider] = None, dimension: Optional[int] = None) -> None:
        self.provider = provider or get_default_embedding_provider()
        self.dimension = dimension

    def embed(self, texts: Union[str, Sequence[str]]) -> List[List[float]]:
        """Embed one text or a batch of texts.

        Blank and non-string entries are filtered out first, so the
        result is aligned with the filtered input.  An input with
        nothing left to embed returns an empty list without calling the
        provider.

        Raises:
            EmbeddingProviderError: If the provider fails or returns a
                response of the wrong shape.
        """
        items = [texts] if isinstance(texts, str) else list(texts)
        valid = [t for t in items if isinstance(t, str) and t.strip()]
        if not valid:
            return []
        name = self.provider.__class__.__name__
        try:
            vectors = self.provider.embed(valid)
        except Exception as exc:  # noqa: BLE001
            logger.error("Embedding provider %s failed for %d texts: %s", name, len(valid), exc)
            raise EmbeddingProviderError(f"Embedding generation failed: {exc}") from exc
        if len(vectors) != len(valid):
            raise EmbeddingProviderError(
                f"{name} returned {len(vectors)} vectors for {len(valid)} texts"
            )
        dims = {len(v) for v in vectors}
        if len(dims) != 1:
            raise EmbeddingProviderError(f"{name} returned vectors of mixed dimensionality: {sorted(dims)}")
        dim = dims.pop()
        if dim == 0:
            raise EmbeddingProviderError(f"{name} returned empty vectors")
        if self.dimension is None:
            self.dimension = dim
        elif dim != self.dimension:
            raise EmbeddingProviderError(
                f"{name} returned {dim}-dimensional vectors; expected {self.dimension}"
            )
        logger.debug("Embedded %d texts with %s (dim=%d)", len(valid), name, dim)
        return [[float(x) for x in v] for v in vectors]
