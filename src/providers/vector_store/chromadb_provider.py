"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
Uses cosine distance for similarity search.  Fully local, no external
service required.

Row layout (one record per chunk):

    id         chunk_id
    document   chunk text
    embedding  chunk vector
    metadata   project_id, doc_type, page_no, document_id,
               start_offset, end_offset, seq

``seq`` is a monotonically increasing insertion stamp used to break
similarity ties deterministically and to list a project's chunks in the
order they were ingested.
"""

from __future__ import annotations

import asyncio
import os
import time
from typing import Any

# Disable ChromaDB telemetry before importing chromadb.  A version mismatch
# between ChromaDB's bundled PostHog client and the installed one raises
# "capture() takes 1 positional argument but 3 were given" on every call.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.rag import DocType, DocumentChunk, ProjectStats, SearchResult
from src.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    Every vector is computed by our own :class:`IEmbeddingProvider` and
    passed in explicitly, so ChromaDB's default all-MiniLM-L6-v2 ONNX model
    would only cost a download and ~80 MB of RAM.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "Embeddings are pre-computed; ChromaDB's built-in embedding must not run."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence.

    Parameters
    ----------
    persist_directory:
        Directory for the on-disk database.
    collection_name:
        Collection holding every project's chunks.
    embedding_provider:
        Optional; when given, its dimension is checked against vectors
        already in the collection at startup.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "vector_index",
        embedding_provider: IEmbeddingProvider | None = None,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections persisted by an older ChromaDB with the default embedding
        # function reject a different one; fall back to the persisted function.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        # Serialises writers; ChromaDB calls themselves are synchronous.
        self._write_lock = asyncio.Lock()
        self._last_seq = 0

        self._validate_embedding_dimensions()

    # ------------------------------------------------------------------
    # Startup validation
    # ------------------------------------------------------------------

    def _validate_embedding_dimensions(self) -> None:
        """Verify the embedding provider's dimension matches stored vectors.

        A mismatch means every query would return garbage, so fail loud.
        """
        if self._embedding_provider is None:
            return
        try:
            if self._collection.count() == 0:
                return
            sample = self._collection.peek(limit=1)
            embeddings = sample.get("embeddings") if sample else None
            if embeddings is None or len(embeddings) == 0:
                return
        except Exception as exc:
            logger.warning("embedding_dimension_check_skipped", error=str(exc))
            return

        stored_dim = len(embeddings[0])
        expected_dim = self._embedding_provider.get_dimension()
        if stored_dim != expected_dim:
            logger.error(
                "embedding_dimension_mismatch",
                stored_dim=stored_dim,
                expected_dim=expected_dim,
                provider=self._embedding_provider.get_provider_name(),
            )
            raise VectorStoreError(
                message=(
                    f"Embedding dimension mismatch: collection has {stored_dim}-dim vectors "
                    f"but provider '{self._embedding_provider.get_provider_name()}' "
                    f"produces {expected_dim}-dim vectors"
                ),
                provider_name=self.get_provider_name(),
            )
        logger.info("embedding_dimension_validated", dimension=stored_dim)

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def insert(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
        batch_size: int = 500,
    ) -> int:
        """Add pre-embedded chunks to the collection, all or nothing.

        Chunks are written in slices of *batch_size*.  If any slice fails,
        every id attempted by this call is deleted again before the error
        is raised, so a failed insert leaves nothing behind for searches.
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"chunks and embeddings length mismatch: {len(chunks)} != {len(embeddings)}"
            )
        if not chunks:
            return 0

        async with self._write_lock:
            ids = [c.chunk_id for c in chunks]
            first_seq = self._next_seq(len(chunks))
            try:
                for start in range(0, len(chunks), batch_size):
                    end = min(start + batch_size, len(chunks))
                    self._collection.add(
                        ids=ids[start:end],
                        embeddings=embeddings[start:end],
                        documents=[c.text for c in chunks[start:end]],
                        metadatas=[
                            self._chunk_to_metadata(c, first_seq + start + offset)
                            for offset, c in enumerate(chunks[start:end])
                        ],
                    )
            except Exception as exc:
                self._rollback(ids)
                raise VectorStoreError(
                    message=f"ChromaDB insert failed: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

        logger.info(
            "chromadb_insert",
            count=len(chunks),
            project_id=chunks[0].project_id,
            batches=(len(chunks) + batch_size - 1) // batch_size,
        )
        return len(chunks)

    async def search(
        self,
        project_id: str,
        query_vector: list[float],
        top_k: int = 8,
    ) -> list[SearchResult]:
        """Return the *top_k* closest chunks of *project_id*.

        Over-fetches ``2 * top_k`` so that ties straddling the cut-off are
        resolved by insertion order rather than by HNSW visiting order.
        """
        if top_k <= 0:
            return []
        try:
            total = self._collection.count()
            if total == 0:
                return []

            results = self._collection.query(
                query_embeddings=[query_vector],
                n_results=min(total, top_k * 2),
                where={"project_id": project_id},
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB search failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results["documents"] else [""] * len(ids)
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
        distances = results["distances"][0] if results["distances"] else [0.0] * len(ids)

        scored: list[tuple[float, int, SearchResult]] = []
        for chunk_id, doc_text, meta, distance in zip(
            ids, documents, metadatas, distances, strict=True
        ):
            # Guard the scope even though the where clause already applied it.
            if meta.get("project_id") != project_id:
                continue
            similarity = 1.0 - float(distance)
            chunk = self._metadata_to_chunk(chunk_id, meta, doc_text or "")
            scored.append(
                (similarity, int(meta.get("seq", 0)), SearchResult(chunk=chunk, similarity_score=similarity))
            )

        scored.sort(key=lambda item: (-item[0], item[1]))
        retrieved = [item[2] for item in scored[:top_k]]

        logger.info(
            "chromadb_search",
            project_id=project_id,
            raw_results=len(ids),
            results_count=len(retrieved),
            top_score=retrieved[0].similarity_score if retrieved else 0.0,
        )
        return retrieved

    async def list_chunks(self, project_id: str, limit: int = 50) -> list[DocumentChunk]:
        """Return up to *limit* of the project's chunks in insertion order."""
        rows = self._get_project_rows(project_id, include=["documents", "metadatas"])
        ordered = sorted(rows, key=lambda row: int(row[1].get("seq", 0)))
        return [
            self._metadata_to_chunk(chunk_id, meta, doc or "")
            for chunk_id, meta, doc in ordered[:limit]
        ]

    async def get_stats(self, project_id: str) -> ProjectStats:
        """Count the project's chunks, distinct documents, and chunks per doc type."""
        rows = self._get_project_rows(project_id, include=["metadatas"])
        by_type: dict[str, int] = {}
        documents: set[str] = set()
        for _, meta, _ in rows:
            doc_type = str(meta.get("doc_type", "unknown"))
            by_type[doc_type] = by_type.get(doc_type, 0) + 1
            if meta.get("document_id"):
                documents.add(str(meta["document_id"]))
        return ProjectStats(
            project_id=project_id,
            total_chunks=len(rows),
            total_documents=len(documents),
            chunks_by_doc_type=by_type,
        )

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        try:
            self._collection.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _next_seq(self, count: int) -> int:
        """Reserve *count* consecutive insertion stamps and return the first."""
        first = max(time.time_ns(), self._last_seq + 1)
        self._last_seq = first + count - 1
        return first

    def _rollback(self, ids: list[str]) -> None:
        try:
            self._collection.delete(ids=ids)
        except Exception as exc:
            logger.error("chromadb_rollback_failed", ids=len(ids), error=str(exc))
        else:
            logger.warning("chromadb_insert_rolled_back", ids=len(ids))

    def _get_project_rows(
        self, project_id: str, include: list[str]
    ) -> list[tuple[str, dict[str, Any], str | None]]:
        try:
            page = self._collection.get(where={"project_id": project_id}, include=include)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB read failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        ids = page["ids"] or []
        metadatas = page.get("metadatas") or [{}] * len(ids)
        documents = page.get("documents") or [None] * len(ids)
        return list(zip(ids, metadatas, documents, strict=True))

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk, seq: int) -> dict[str, Any]:
        return {
            "project_id": chunk.project_id,
            "doc_type": chunk.doc_type.value,
            "page_no": chunk.page_number,
            "document_id": chunk.document_id,
            "start_offset": chunk.start_offset,
            "end_offset": chunk.end_offset,
            "seq": seq,
        }

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, meta: dict[str, Any], text: str) -> DocumentChunk:
        return DocumentChunk(
            chunk_id=chunk_id,
            project_id=str(meta.get("project_id", "")),
            document_id=str(meta.get("document_id", "")),
            doc_type=DocType(meta.get("doc_type", DocType.SOP.value)),
            page_number=int(meta.get("page_no", 1)),
            text=text,
            start_offset=int(meta.get("start_offset", 0)),
            end_offset=int(meta.get("end_offset", len(text))),
        )
