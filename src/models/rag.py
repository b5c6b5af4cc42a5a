"""Data models for the project document knowledge base.

Defines Pydantic v2 models for the two pipelines that share the vector store:

    Ingestion:  PDF bytes -> PageText[] -> DocumentChunk[] -> embeddings -> store
    Answering:  query -> embedding -> SearchResult[] -> prompt -> token stream
                -> Citation[] + marker-free answer

All models use frozen config; chunks in particular are never updated once
created, only inserted.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# DocType -- the closed set of document kinds a project can hold.
# ---------------------------------------------------------------------------
class DocType(str, Enum):  # noqa: UP042
    """Kind of project document.  The value is the label shown to the model."""

    ZED_GUIDELINE = "ZED Guideline"
    SOP = "SOP"
    BASELINE_REPORT = "Baseline Report"

    @classmethod
    def parse(cls, value: str) -> DocType:
        """Resolve *value* by label, member name or alias, case-insensitively.

        Aliases are the hyphenated identifiers ``guideline``,
        ``standard-operating-procedure`` and ``baseline-report``.

        Raises
        ------
        ValueError
            If *value* names none of the known document types.
        """
        wanted = value.strip().lower()
        if wanted in _DOC_TYPE_ALIASES:
            return _DOC_TYPE_ALIASES[wanted]
        for member in cls:
            if wanted in (member.value.lower(), member.name.lower()):
                return member
        allowed = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown document type {value!r}; expected one of: {allowed}")


_DOC_TYPE_ALIASES: dict[str, DocType] = {
    "guideline": DocType.ZED_GUIDELINE,
    "zed-guideline": DocType.ZED_GUIDELINE,
    "standard-operating-procedure": DocType.SOP,
    "baseline-report": DocType.BASELINE_REPORT,
}


# ---------------------------------------------------------------------------
# PageText -- transient per-page text produced by the document parser.
# ---------------------------------------------------------------------------
class PageText(BaseModel):
    """Whitespace-normalised plain text of one PDF page."""

    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1, description="1-based page number within the document.")
    text: str = Field(default="", description="Extracted page text; may be empty.")


# ---------------------------------------------------------------------------
# DocumentChunk -- the unit of embedding and retrieval.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A contiguous, page-scoped slice of document text.

    ``text == page.text[start_offset:end_offset]`` for the page the chunk was
    cut from.  A chunk never spans pages, because the page number is what
    citations point at.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Unique identifier (UUID) for this chunk.")
    project_id: str = Field(description="Tenant scope key; every search filters on it.")
    document_id: str = Field(
        default="",
        description="SHA-256 of the source file bytes this chunk was cut from.",
    )
    doc_type: DocType = Field(description="Kind of the source document.")
    page_number: int = Field(ge=1, description="1-based page the chunk was cut from.")
    text: str = Field(description="The chunk's textual content.")
    start_offset: int = Field(default=0, ge=0, description="Start offset within the page text.")
    end_offset: int = Field(default=0, ge=0, description="End offset (exclusive) within the page text.")


# ---------------------------------------------------------------------------
# SearchResult -- a chunk plus its similarity to the query.
# ---------------------------------------------------------------------------
class SearchResult(BaseModel):
    """A stored chunk returned by a scoped similarity search."""

    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk = Field(description="The retrieved chunk.")
    similarity_score: float = Field(
        default=0.0,
        description="Cosine similarity between the query and the chunk (higher is closer).",
    )


# ---------------------------------------------------------------------------
# Citation -- a (doc type, page) pair pulled out of generated text.
# ---------------------------------------------------------------------------
class Citation(BaseModel):
    """A source reference extracted from an inline ``[Source: X, Page N]`` marker.

    ``doc_type`` is the label exactly as the model wrote it (e.g. ``"SOP-01"``),
    not necessarily a :class:`DocType` value.
    """

    model_config = ConfigDict(frozen=True)

    doc_type: str = Field(description="Document label as written in the marker.")
    page_number: int = Field(ge=0, description="Page number as written in the marker.")

    @property
    def key(self) -> tuple[str, int]:
        return (self.doc_type, self.page_number)


# ---------------------------------------------------------------------------
# Ingestion results
# ---------------------------------------------------------------------------
class IngestionStatus(str, Enum):  # noqa: UP042
    """Outcome of a successful ingestion request."""

    STORED = "stored"
    NO_CONTENT = "no_content"


class IngestionResult(BaseModel):
    """Summary of one document ingestion.

    ``NO_CONTENT`` means the PDF was readable but yielded no text; it is a
    valid result, distinct from a parse or backend failure (which raise).
    """

    model_config = ConfigDict(frozen=True)

    project_id: str
    doc_type: DocType
    document_id: str = ""
    status: IngestionStatus
    pages: int = Field(default=0, ge=0, description="Pages found in the document.")
    chunks_stored: int = Field(default=0, ge=0, description="Chunks inserted into the store.")
    ingestion_time: float = Field(default=0.0, ge=0.0, description="Wall-clock seconds.")

    @property
    def message(self) -> str:
        if self.status is IngestionStatus.NO_CONTENT:
            return "PDF parsing resulted in no text content."
        return f"Successfully processed and stored {self.chunks_stored} text chunks."


# ---------------------------------------------------------------------------
# Answering
# ---------------------------------------------------------------------------
class AnswerState(str, Enum):  # noqa: UP042
    """Lifecycle of a single query.

    IDLE -> EMBEDDING -> RETRIEVING -> NO_CONTEXT -> DONE
                                    -> GENERATING -> EXTRACTING -> DONE

    Any failure while embedding, retrieving or generating ends in FAILED;
    a caller disconnect mid-stream ends in CANCELLED.
    """

    IDLE = "idle"
    EMBEDDING = "embedding"
    RETRIEVING = "retrieving"
    NO_CONTEXT = "no_context"
    GENERATING = "generating"
    EXTRACTING = "extracting"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class AnswerResult(BaseModel):
    """Final answer once the generation stream has completed."""

    model_config = ConfigDict(frozen=True)

    answer: str = Field(description="Answer text with inline citation markers removed.")
    raw_answer: str = Field(description="Answer text exactly as streamed.")
    citations: list[Citation] = Field(
        default_factory=list,
        description="Distinct citations in first-seen order.",
    )
    no_context: bool = Field(
        default=False,
        description="True when the answer is the fixed no-answer sentinel.",
    )
    context_chunks: int = Field(default=0, ge=0, description="Chunks supplied as context.")


# ---------------------------------------------------------------------------
# ProjectStats -- a snapshot of one project's slice of the store.
# ---------------------------------------------------------------------------
class ProjectStats(BaseModel):
    """Aggregate statistics for one project's stored chunks."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    total_chunks: int = Field(default=0, ge=0)
    total_documents: int = Field(default=0, ge=0, description="Distinct document_id values.")
    chunks_by_doc_type: dict[str, int] = Field(
        default_factory=dict,
        description='Chunk count per document type, e.g. {"SOP": 12}.',
    )
