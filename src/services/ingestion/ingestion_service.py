"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **parse -> chunk -> embed -> store**.

The :class:`IngestionService` coordinates four collaborators (PDF processor,
chunker, embedding provider, vector store) without any of them knowing
about each other:

    1. PDFProcessor -- reads the upload, returns per-page text
    2. TextChunker -- splits pages into overlapping character windows
    3. IEmbeddingProvider -- embeds chunk text in fixed-size batches,
       fanned out concurrently and rejoined in input order
    4. IVectorStoreProvider -- stores every chunk in one all-or-nothing insert

All dependencies are injected via constructor, so providers can be swapped
(e.g. OpenAI -> Ollama, ChromaDB -> in-memory) without changing this class.
Nothing is retried here; a failure anywhere fails the whole upload and
nothing from it is left visible in the store.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from typing import TYPE_CHECKING

import structlog

from src.models.rag import (
    DocType,
    DocumentChunk,
    IngestionResult,
    IngestionStatus,
    ProjectStats,
)
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.source_processors.pdf_processor import PDFProcessor
from src.utils.concurrency import first_exception, throttled_gather
from src.utils.errors import EmbeddingError, InputValidationError, KnowledgeBaseError

if TYPE_CHECKING:
    from src.interfaces.embedding_provider import IEmbeddingProvider
    from src.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)


class IngestionService:
    """Orchestrates the ingestion pipeline: parse -> chunk -> embed -> store.

    Parameters
    ----------
    chunker:
        Splits page text into overlapping windows.
    embedding_provider:
        Generates embedding vectors for chunk text.
    vector_store:
        Stores embedded chunks for scoped retrieval.
    pdf_processor:
        Extracts page text from uploads; a default instance is created
        when omitted.
    embed_batch_size:
        Chunks per embedding request.
    embed_concurrency:
        Maximum embedding requests in flight per upload.
    max_upload_bytes:
        Uploads larger than this are rejected before parsing.
    """

    def __init__(
        self,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        pdf_processor: PDFProcessor | None = None,
        embed_batch_size: int = 100,
        embed_concurrency: int = 4,
        max_upload_bytes: int | None = None,
    ) -> None:
        if embed_batch_size < 1:
            raise ValueError(f"embed_batch_size must be positive, got {embed_batch_size}")
        if embed_concurrency < 1:
            raise ValueError(f"embed_concurrency must be positive, got {embed_concurrency}")
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._pdf_processor = pdf_processor or PDFProcessor()
        self._embed_batch_size = embed_batch_size
        self._embed_concurrency = embed_concurrency
        self._max_upload_bytes = max_upload_bytes

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest_pdf(
        self,
        project_id: str,
        doc_type: DocType | str,
        data: bytes,
        filename: str = "",
    ) -> IngestionResult:
        """Ingest one uploaded PDF into *project_id*'s slice of the store.

        Returns
        -------
        IngestionResult
            ``status == STORED`` with the number of chunks stored, or
            ``status == NO_CONTENT`` when the PDF is readable but yields
            no text.

        Raises
        ------
        InputValidationError
            Missing project id, unknown doc type, empty or oversized file.
        DocumentParseError
            The file is not a readable PDF or has zero pages.
        BackendError
            Embedding or store failure.  Nothing from this upload is stored.
        """
        started = time.monotonic()
        project_id = self._validate_project_id(project_id)
        resolved_type = self._validate_doc_type(doc_type)
        self._validate_file(data)

        document_id = hashlib.sha256(data).hexdigest()
        log = logger.bind(
            project_id=project_id,
            doc_type=resolved_type.value,
            document_id=document_id[:12],
            filename=filename,
        )

        pages = await asyncio.to_thread(self._pdf_processor.extract_pages, data)
        chunks = self._chunker.chunk(
            pages,
            project_id=project_id,
            doc_type=resolved_type,
            document_id=document_id,
        )

        if not chunks:
            log.warning("ingestion_no_content", pages=len(pages))
            return IngestionResult(
                project_id=project_id,
                doc_type=resolved_type,
                document_id=document_id,
                status=IngestionStatus.NO_CONTENT,
                pages=len(pages),
                chunks_stored=0,
                ingestion_time=time.monotonic() - started,
            )

        embeddings = await self.embed_chunks(chunks)
        stored = await self._vector_store.insert(chunks, embeddings)

        elapsed = time.monotonic() - started
        log.info(
            "ingestion_complete",
            pages=len(pages),
            chunks=stored,
            elapsed_s=round(elapsed, 3),
        )
        return IngestionResult(
            project_id=project_id,
            doc_type=resolved_type,
            document_id=document_id,
            status=IngestionStatus.STORED,
            pages=len(pages),
            chunks_stored=stored,
            ingestion_time=elapsed,
        )

    async def embed_chunks(self, chunks: list[DocumentChunk]) -> list[list[float]]:
        """Embed *chunks* in batches and return vectors in chunk order.

        Batches run concurrently, bounded by ``embed_concurrency``.  Any
        failing batch fails the whole call; the remaining results are
        discarded.
        """
        batches = [
            chunks[i : i + self._embed_batch_size]
            for i in range(0, len(chunks), self._embed_batch_size)
        ]
        semaphore = asyncio.Semaphore(self._embed_concurrency)
        results = await throttled_gather(
            [self._embedding_provider.embed([c.text for c in batch]) for batch in batches],
            semaphore,
        )

        failure = first_exception(results)
        if failure is not None:
            logger.error(
                "embedding_batch_failed",
                batches=len(batches),
                error=str(failure),
            )
            if isinstance(failure, KnowledgeBaseError):
                raise failure
            raise EmbeddingError(
                message=f"Embedding batch failed: {failure}",
                provider_name=self._embedding_provider.get_provider_name(),
            ) from failure

        embeddings: list[list[float]] = []
        for batch, vectors in zip(batches, results, strict=True):
            if len(vectors) != len(batch):
                raise EmbeddingError(
                    message=(
                        f"Embedding batch returned {len(vectors)} vectors "
                        f"for {len(batch)} texts"
                    ),
                    provider_name=self._embedding_provider.get_provider_name(),
                )
            embeddings.extend(vectors)

        logger.debug("chunks_embedded", chunks=len(chunks), batches=len(batches))
        return embeddings

    async def get_project_stats(self, project_id: str) -> ProjectStats:
        """Return chunk and document counts for *project_id*."""
        return await self._vector_store.get_stats(self._validate_project_id(project_id))

    async def list_project_chunks(
        self, project_id: str, limit: int = 50
    ) -> list[DocumentChunk]:
        """Return up to *limit* of *project_id*'s stored chunks in insertion order."""
        if limit < 1:
            raise InputValidationError(message=f"limit must be positive, got {limit}")
        return await self._vector_store.list_chunks(
            self._validate_project_id(project_id), limit=limit
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_project_id(project_id: str) -> str:
        if not project_id or not project_id.strip():
            raise InputValidationError(message="project_id is required")
        return project_id.strip()

    @staticmethod
    def _validate_doc_type(doc_type: DocType | str) -> DocType:
        if isinstance(doc_type, DocType):
            return doc_type
        if not doc_type or not doc_type.strip():
            raise InputValidationError(message="doc_type is required")
        try:
            return DocType.parse(doc_type)
        except ValueError as exc:
            raise InputValidationError(message=str(exc)) from exc

    def _validate_file(self, data: bytes) -> None:
        if not data:
            raise InputValidationError(message="file is required and must not be empty")
        if self._max_upload_bytes is not None and len(data) > self._max_upload_bytes:
            raise InputValidationError(
                message=(
                    f"file is {len(data)} bytes; the limit is {self._max_upload_bytes} bytes"
                )
            )
