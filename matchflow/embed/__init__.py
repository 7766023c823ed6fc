"""
Embedding subsystem for matchflow.

`EmbeddingGateway` validates every embedding call; the providers in
`providers` talk to OpenAI, Gemini or a local hashing fallback.
"""

from .providers import (  # noqa: F401
    EmbeddingProvider,
    GeminiEmbeddingProvider,
    HashingEmbeddingProvider,
    OpenAIEmbeddingProvider,
    get_default_embedding_provider,
)
from .gateway import EmbeddingGateway  # noqa: F401
