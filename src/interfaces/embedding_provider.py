"""Abstract base class for text-embedding service providers.

Defines the contract for turning text into embedding vectors.  The same
provider instance embeds both document chunks at ingestion time and the
query at answer time, so both live in one vector space.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider -- text-embedding-3-small or an OpenAI-compatible model
#   NomicEmbeddingProvider  -- nomic-embed-text via Ollama (local)
# Located in: src/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by both pipelines."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            One vector per input, in exactly the order of *texts*.  Callers
            re-associate vector *i* with text *i* by position.

        Raises
        ------
        src.utils.errors.EmbeddingError
            If the backend call fails.  The whole batch fails together;
            there is no partial-batch result.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text (e.g. a query)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Must match the dimension of vectors already held by the store.
        Example values: ``1536`` (``text-embedding-3-small``), ``768``
        (``nomic-embed-text``).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier used in logs and error messages."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and reachable."""
