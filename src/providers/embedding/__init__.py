"""Embedding provider implementations.

Two implementations of IEmbeddingProvider, in the order main.py tries them:
    1. OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims), or any
       OpenAI-compatible embedding model behind ``OPENAI_BASE_URL``.
    2. NomicEmbeddingProvider  -- nomic-embed-text via a local Ollama server
       (768 dims).

Documents and queries must be embedded by the same provider; switching
providers means re-ingesting the corpus.
"""

from src.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider", "NomicEmbeddingProvider"]
