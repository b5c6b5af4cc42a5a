"""Pydantic request/response schemas for the knowledge base API.

Defines the public contract for the REST endpoints: document upload,
questions, project statistics and context listing, citation parsing,
and health.

Convention: request schemas end with "Request", response schemas end with
"Response".  Query emptiness is checked by the service layer, not here,
so an empty query is reported as a 400 input error like every other
client-fixable mistake.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from src.models.rag import AnswerResult, Citation, DocumentChunk, IngestionResult, ProjectStats


class IngestResponse(BaseModel):
    """Response returned after uploading a project document."""

    project_id: str
    doc_type: str
    document_id: str
    status: str = Field(description='"stored", or "no_content" when the PDF has no text.')
    pages: int
    chunks_stored: int
    message: str
    ingestion_time: float

    @classmethod
    def from_result(cls, result: IngestionResult) -> IngestResponse:
        return cls(
            project_id=result.project_id,
            doc_type=result.doc_type.value,
            document_id=result.document_id,
            status=result.status.value,
            pages=result.pages,
            chunks_stored=result.chunks_stored,
            message=result.message,
            ingestion_time=round(result.ingestion_time, 3),
        )


class AskRequest(BaseModel):
    """A natural-language question about a project's documents."""

    query: str = Field(default="", max_length=4000)


class CitationResponse(BaseModel):
    """One ``(doc type, page)`` reference."""

    doc_type: str
    page_number: int

    @classmethod
    def from_citation(cls, citation: Citation) -> CitationResponse:
        return cls(doc_type=citation.doc_type, page_number=citation.page_number)


class AnswerResponse(BaseModel):
    """Final answer with citation markers stripped and listed separately."""

    answer: str
    citations: list[CitationResponse] = Field(default_factory=list)
    no_context: bool = False
    context_chunks: int = 0

    @classmethod
    def from_result(cls, result: AnswerResult) -> AnswerResponse:
        return cls(
            answer=result.answer,
            citations=[CitationResponse.from_citation(c) for c in result.citations],
            no_context=result.no_context,
            context_chunks=result.context_chunks,
        )


class ProjectStatsResponse(BaseModel):
    """Chunk and document counts for one project."""

    project_id: str
    total_chunks: int
    total_documents: int
    chunks_by_doc_type: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_stats(cls, stats: ProjectStats) -> ProjectStatsResponse:
        return cls(**stats.model_dump())


class ChunkItem(BaseModel):
    """A stored chunk as listed for report context."""

    chunk_id: str
    document_id: str
    doc_type: str
    page_number: int
    text: str

    @classmethod
    def from_chunk(cls, chunk: DocumentChunk) -> ChunkItem:
        return cls(
            chunk_id=chunk.chunk_id,
            document_id=chunk.document_id,
            doc_type=chunk.doc_type.value,
            page_number=chunk.page_number,
            text=chunk.text,
        )


class ChunkListResponse(BaseModel):
    """Up to ``limit`` of a project's chunks in insertion order."""

    project_id: str
    chunks: list[ChunkItem] = Field(default_factory=list)
    count: int = 0


class CitationParseRequest(BaseModel):
    """Arbitrary answer text to scan for citation markers."""

    text: str = Field(default="", max_length=100_000)


class CitationParseResponse(BaseModel):
    """Citations found in the text, plus the text with markers removed."""

    citations: list[CitationResponse] = Field(default_factory=list)
    stripped_text: str


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
