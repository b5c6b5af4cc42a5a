"""In-memory vector store provider.

Exact cosine scan over a process-local list.  Suitable for development,
tests, and single-process deployments that do not need persistence; swap
for :class:`ChromaDBProvider` via ``VECTOR_STORE_BACKEND=chromadb``.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass

import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import DocumentChunk, ProjectStats, SearchResult
from src.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)


@dataclass(frozen=True)
class _Row:
    seq: int
    chunk: DocumentChunk
    vector: list[float]
    norm: float


class InMemoryVectorStore(IVectorStoreProvider):
    """Vector store held in a Python list, guarded by an ``asyncio.Lock``.

    A batch is validated completely before any row is appended, so a
    rejected insert leaves the store unchanged.
    """

    def __init__(self) -> None:
        self._rows: list[_Row] = []
        self._ids: set[str] = set()
        self._dimension: int | None = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def insert(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"chunks and embeddings length mismatch: {len(chunks)} != {len(embeddings)}"
            )
        if not chunks:
            return 0

        async with self._lock:
            dimension = self._dimension or len(embeddings[0])
            seen: set[str] = set()
            pending: list[_Row] = []
            for offset, (chunk, vector) in enumerate(zip(chunks, embeddings, strict=True)):
                if len(vector) == 0 or len(vector) != dimension:
                    raise VectorStoreError(
                        message=(
                            f"Embedding for chunk {chunk.chunk_id} has dimension "
                            f"{len(vector)}, expected {dimension}"
                        ),
                        provider_name=self.get_provider_name(),
                    )
                if chunk.chunk_id in self._ids or chunk.chunk_id in seen:
                    raise VectorStoreError(
                        message=f"Duplicate chunk id {chunk.chunk_id}",
                        provider_name=self.get_provider_name(),
                    )
                seen.add(chunk.chunk_id)
                pending.append(
                    _Row(
                        seq=len(self._rows) + offset,
                        chunk=chunk,
                        vector=list(vector),
                        norm=_norm(vector),
                    )
                )

            self._rows.extend(pending)
            self._ids.update(seen)
            self._dimension = dimension

        logger.info("memory_store_insert", count=len(chunks), project_id=chunks[0].project_id)
        return len(chunks)

    async def search(
        self,
        project_id: str,
        query_vector: list[float],
        top_k: int = 8,
    ) -> list[SearchResult]:
        if top_k <= 0:
            return []
        async with self._lock:
            rows = [r for r in self._rows if r.chunk.project_id == project_id]
            dimension = self._dimension

        if not rows:
            return []
        if len(query_vector) != dimension:
            raise VectorStoreError(
                message=f"Query vector has dimension {len(query_vector)}, expected {dimension}",
                provider_name=self.get_provider_name(),
            )

        query_norm = _norm(query_vector)
        scored = [(_cosine(query_vector, query_norm, row), row.seq, row) for row in rows]
        scored.sort(key=lambda item: (-item[0], item[1]))

        return [
            SearchResult(chunk=row.chunk, similarity_score=score)
            for score, _, row in scored[:top_k]
        ]

    async def list_chunks(self, project_id: str, limit: int = 50) -> list[DocumentChunk]:
        async with self._lock:
            return [r.chunk for r in self._rows if r.chunk.project_id == project_id][:limit]

    async def get_stats(self, project_id: str) -> ProjectStats:
        async with self._lock:
            chunks = [r.chunk for r in self._rows if r.chunk.project_id == project_id]
        by_type: dict[str, int] = {}
        for chunk in chunks:
            by_type[chunk.doc_type.value] = by_type.get(chunk.doc_type.value, 0) + 1
        return ProjectStats(
            project_id=project_id,
            total_chunks=len(chunks),
            total_documents=len({c.document_id for c in chunks if c.document_id}),
            chunks_by_doc_type=by_type,
        )

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True


def _norm(vector: list[float]) -> float:
    return math.sqrt(math.fsum(x * x for x in vector))


def _cosine(query: list[float], query_norm: float, row: _Row) -> float:
    if query_norm == 0.0 or row.norm == 0.0:
        return 0.0
    dot = math.fsum(a * b for a, b in zip(query, row.vector, strict=True))
    return dot / (query_norm * row.norm)
