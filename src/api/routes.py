"""FastAPI API routes for the project knowledge base.

Provides REST endpoints for document upload, streamed and non-streamed
answers, project statistics and context listing, citation parsing, and
health.  Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern.

# Endpoint                                   Method  Description
# ───────────────────────────────────────────────────────────────────────
# /api/v1/projects/{pid}/documents           POST    Upload PDF -> chunk -> embed -> store
# /api/v1/projects/{pid}/ask                 POST    Streamed answer (text/plain)
# /api/v1/projects/{pid}/answer              POST    Final answer + citation list
# /api/v1/projects/{pid}/stats               GET     Chunk / document counts
# /api/v1/projects/{pid}/chunks              GET     Stored chunks, insertion order
# /api/v1/citations/parse                    POST    Extract citations from any text
# /api/v1/health                             GET     Health check + provider status

Pipeline errors are not caught here; ErrorHandlingMiddleware maps them to
status codes.
"""

from __future__ import annotations

from typing import Annotated, Any, AsyncIterator

import structlog
from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import StreamingResponse

from src.api.schemas import (
    AnswerResponse,
    AskRequest,
    ChunkItem,
    ChunkListResponse,
    CitationParseRequest,
    CitationParseResponse,
    CitationResponse,
    ErrorResponse,
    HealthResponse,
    IngestResponse,
    ProjectStatsResponse,
)
from src.config.settings import Settings
from src.models.rag import AnswerState
from src.services.citation_extractor import CitationExtractor
from src.services.ingestion.ingestion_service import IngestionService
from src.services.qa_service import AnswerStream, QAService
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

# Uploads are read in 64 KB increments so an oversized file is rejected
# without buffering all of it.
_UPLOAD_CHUNK_SIZE = 64 * 1024

_APP_VERSION = "0.1.0"

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_settings(request: Request) -> Settings:
    """Return the application settings from application state."""
    return request.app.state.settings


def _get_ingestion_service(request: Request) -> IngestionService | None:
    """Return the ingestion service, or ``None`` without an embedding provider."""
    return getattr(request.app.state, "ingestion_service", None)


def _get_qa_service(request: Request) -> QAService | None:
    """Return the Q&A service, or ``None`` without embedding and LLM providers."""
    return getattr(request.app.state, "qa_service", None)


def _get_citation_extractor(request: Request) -> CitationExtractor:
    return getattr(request.app.state, "citation_extractor", None) or CitationExtractor()


SettingsDep = Annotated[Settings, Depends(_get_settings)]
IngestionServiceDep = Annotated[IngestionService | None, Depends(_get_ingestion_service)]
QAServiceDep = Annotated[QAService | None, Depends(_get_qa_service)]
CitationExtractorDep = Annotated[CitationExtractor, Depends(_get_citation_extractor)]


def _require(service: Any, name: str) -> Any:
    if service is None:
        raise HTTPException(status_code=503, detail=f"{name} not available")
    return service


async def _stream_body(stream: AnswerStream) -> AsyncIterator[str]:
    try:
        async for part in stream:
            yield part
    finally:
        await stream.aclose()


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@router.post(
    "/projects/{project_id}/documents",
    response_model=IngestResponse,
    responses={**_ERROR_RESPONSES, 413: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Upload a project document (PDF)",
)
async def upload_document(
    project_id: str,
    file: UploadFile,
    doc_type: Annotated[str, Form()],
    settings: SettingsDep,
    ingestion_service: IngestionServiceDep,
) -> IngestResponse:
    """Parse, chunk, embed and store one PDF for *project_id*.

    ``status`` is ``no_content`` when the PDF is readable but has no text.
    """
    service: IngestionService = _require(ingestion_service, "Ingestion service")

    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > settings.max_upload_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Maximum: {settings.max_upload_bytes} bytes.",
            )
        chunks.append(chunk)
    data = b"".join(chunks)

    result = await service.ingest_pdf(
        project_id=project_id,
        doc_type=doc_type,
        data=data,
        filename=file.filename or "",
    )
    return IngestResponse.from_result(result)


# ---------------------------------------------------------------------------
# Answering
# ---------------------------------------------------------------------------


@router.post(
    "/projects/{project_id}/ask",
    response_class=StreamingResponse,
    responses=_ERROR_RESPONSES,
    summary="Ask a question; the answer streams back as plain text",
)
async def ask_question(
    project_id: str,
    body: AskRequest,
    qa_service: QAServiceDep,
) -> StreamingResponse:
    """Stream the generated answer with inline ``[Source: X, Page N]`` markers.

    Input, embedding, retrieval and stream-open errors produce a JSON error
    before the first byte is sent.  ``X-No-Context: true`` marks the sentinel
    answer.
    """
    service: QAService = _require(qa_service, "Q&A service")
    stream = await service.ask(body.query, project_id)
    headers = {"X-No-Context": "true" if stream.state is AnswerState.NO_CONTEXT else "false"}
    await stream.start()
    return StreamingResponse(_stream_body(stream), media_type="text/plain; charset=utf-8", headers=headers)


@router.post(
    "/projects/{project_id}/answer",
    response_model=AnswerResponse,
    responses=_ERROR_RESPONSES,
    summary="Ask a question and wait for the final answer",
)
async def answer_question(
    project_id: str,
    body: AskRequest,
    qa_service: QAServiceDep,
) -> AnswerResponse:
    """Return the marker-free answer plus its deduplicated citations."""
    service: QAService = _require(qa_service, "Q&A service")
    result = await service.answer(body.query, project_id)
    return AnswerResponse.from_result(result)


# ---------------------------------------------------------------------------
# Project views
# ---------------------------------------------------------------------------


@router.get(
    "/projects/{project_id}/stats",
    response_model=ProjectStatsResponse,
    responses=_ERROR_RESPONSES,
    summary="Chunk and document counts for a project",
)
async def project_stats(
    project_id: str,
    ingestion_service: IngestionServiceDep,
) -> ProjectStatsResponse:
    service: IngestionService = _require(ingestion_service, "Ingestion service")
    stats = await service.get_project_stats(project_id)
    return ProjectStatsResponse.from_stats(stats)


@router.get(
    "/projects/{project_id}/chunks",
    response_model=ChunkListResponse,
    responses=_ERROR_RESPONSES,
    summary="List a project's stored chunks",
)
async def list_project_chunks(
    project_id: str,
    ingestion_service: IngestionServiceDep,
    settings: SettingsDep,
    limit: Annotated[int | None, Query(ge=1, le=1000)] = None,
) -> ChunkListResponse:
    """Return up to *limit* chunks (default ``context_listing_limit``) in insertion order."""
    service: IngestionService = _require(ingestion_service, "Ingestion service")
    chunks = await service.list_project_chunks(
        project_id, limit=limit or settings.context_listing_limit
    )
    return ChunkListResponse(
        project_id=project_id,
        chunks=[ChunkItem.from_chunk(c) for c in chunks],
        count=len(chunks),
    )


# ---------------------------------------------------------------------------
# Citations
# ---------------------------------------------------------------------------


@router.post(
    "/citations/parse",
    response_model=CitationParseResponse,
    summary="Extract citation markers from answer text",
)
async def parse_citations(
    body: CitationParseRequest,
    extractor: CitationExtractorDep,
) -> CitationParseResponse:
    """Apply the answer-side citation parser to arbitrary text."""
    return CitationParseResponse(
        citations=[CitationResponse.from_citation(c) for c in extractor.extract(body.text)],
        stripped_text=extractor.strip_markers(body.text),
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability."""
    providers: dict[str, Any] = {}
    if hasattr(request.app.state, "provider_registry"):
        providers = dict(request.app.state.provider_registry)

    vector_store = getattr(request.app.state, "vector_store", None)
    providers["vector_store"] = vector_store is not None and vector_store.is_available()

    ingest_ok = getattr(request.app.state, "ingestion_service", None) is not None
    answer_ok = getattr(request.app.state, "qa_service", None) is not None

    if providers["vector_store"] and ingest_ok and answer_ok:
        status = "healthy"
    elif providers["vector_store"] and ingest_ok:
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(status=status, version=_APP_VERSION, providers=providers)
