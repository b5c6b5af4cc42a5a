"""Abstract base class for vector-store service providers.

The store is the only shared mutable state between the two pipelines:
ingestion writes to it, answering only reads.  Every read is scoped by
``project_id``; returning another project's chunk is a correctness bug,
not a ranking quirk.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.rag import DocumentChunk, ProjectStats, SearchResult


# Concrete implementations (src/providers/vector_store/):
#   ChromaDBProvider      -- persistent, cosine HNSW index on disk
#   InMemoryVectorStore   -- process-local, exact cosine scan
class IVectorStoreProvider(ABC):
    """Contract for chunk storage and scoped similarity search.

    Implementations must tolerate concurrent :meth:`insert` and
    :meth:`search` calls from simultaneous uploads and queries.
    """

    @abstractmethod
    async def insert(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Append pre-embedded chunks, all or nothing.

        Parameters
        ----------
        chunks:
            Chunks to store.  ``chunk_id`` is the primary key.
        embeddings:
            Vectors corresponding positionally to *chunks*.

        Returns
        -------
        int
            Number of chunks stored (always ``len(chunks)`` on success).

        Raises
        ------
        ValueError
            If ``len(chunks) != len(embeddings)``.
        src.utils.errors.VectorStoreError
            If the write fails.  In that case none of *chunks* is visible
            to subsequent searches.
        """

    @abstractmethod
    async def search(
        self,
        project_id: str,
        query_vector: list[float],
        top_k: int = 8,
    ) -> list[SearchResult]:
        """Return the *top_k* chunks of *project_id* closest to *query_vector*.

        Results are ordered by descending similarity; ties are broken by
        insertion order (earlier first).  A project with no chunks yields
        an empty list, not an error.

        Raises
        ------
        src.utils.errors.VectorStoreError
            If the store is unreachable or the query fails.
        """

    @abstractmethod
    async def list_chunks(self, project_id: str, limit: int = 50) -> list[DocumentChunk]:
        """Return up to *limit* chunks of *project_id* in insertion order."""

    @abstractmethod
    async def get_stats(self, project_id: str) -> ProjectStats:
        """Return chunk and document counts for *project_id*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is reachable."""
