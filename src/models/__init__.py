"""Domain models for the project knowledge base.

Everything lives in ``rag.py``; this package re-exports the public classes
so callers can write ``from src.models import DocumentChunk``.
"""

from __future__ import annotations

from src.models.rag import (
    AnswerResult,
    AnswerState,
    Citation,
    DocType,
    DocumentChunk,
    IngestionResult,
    IngestionStatus,
    PageText,
    ProjectStats,
    SearchResult,
)

__all__ = [
    "AnswerResult",
    "AnswerState",
    "Citation",
    "DocType",
    "DocumentChunk",
    "IngestionResult",
    "IngestionStatus",
    "PageText",
    "ProjectStats",
    "SearchResult",
]
