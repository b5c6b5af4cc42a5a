"""Shared pytest fixtures for the knowledge base test suite."""

from __future__ import annotations

import hashlib
from typing import AsyncIterator

import pytest

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.models.rag import DocType, DocumentChunk, PageText
from src.providers.vector_store.memory_provider import InMemoryVectorStore
from src.services.ingestion.chunker import TextChunker

# ---------------------------------------------------------------------------
# Mock providers
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 64


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic fixed-length unit vector by hashing *text*.

    Each SHA-256 byte maps to a float in [-1, 1]; the digest is re-hashed
    until ``dim`` values are available.  Same text, same vector.
    """
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim:
        raw += hashlib.sha256(raw).digest()
    values = [(b - 127.5) / 127.5 for b in raw[:dim]]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """Deterministic embedder that records every batch it is asked for."""

    def __init__(self, dim: int = _EMBEDDING_DIM) -> None:
        self._dim = dim
        self.batches: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(list(texts))
        return [_hash_to_vector(t, self._dim) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return _hash_to_vector(text, self._dim)

    def get_dimension(self) -> int:
        return self._dim

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockLLMProvider(ILLMProvider):
    """Scripted streaming generator.

    Yields ``parts`` one by one.  When ``fail_after`` is set, raises
    ``error`` after that many parts.  Records every call and whether each
    stream was closed.
    """

    def __init__(
        self,
        parts: list[str] | None = None,
        fail_after: int | None = None,
        error: Exception | None = None,
    ) -> None:
        self.parts = parts if parts is not None else ["Answer."]
        self.fail_after = fail_after
        self.error = error or RuntimeError("stream broke")
        self.calls: list[dict[str, object]] = []
        self.closed = 0
        self.yielded = 0

    async def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 2048,
    ) -> AsyncIterator[str]:
        self.calls.append(
            {
                "system": system_prompt,
                "user": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        try:
            for index, part in enumerate(self.parts):
                if self.fail_after is not None and index >= self.fail_after:
                    raise self.error
                self.yielded += 1
                yield part
            if self.fail_after is not None and self.fail_after >= len(self.parts):
                raise self.error
        finally:
            self.closed += 1

    def get_provider_name(self) -> str:
        return "mock-llm"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def make_chunk(
    chunk_id: str = "c1",
    project_id: str = "proj-a",
    text: str = "Calibrate gauges every six months.",
    doc_type: DocType = DocType.SOP,
    page_number: int = 1,
    document_id: str = "doc-1",
) -> DocumentChunk:
    return DocumentChunk(
        chunk_id=chunk_id,
        project_id=project_id,
        document_id=document_id,
        doc_type=doc_type,
        page_number=page_number,
        text=text,
        start_offset=0,
        end_offset=len(text),
    )


class FakePDFProcessor:
    """Stands in for PDFProcessor; returns fixed pages for any bytes."""

    def __init__(self, pages: list[PageText]) -> None:
        self.pages = pages
        self.calls: list[bytes] = []

    def extract_pages(self, data: bytes) -> list[PageText]:
        self.calls.append(data)
        return list(self.pages)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    """Settings with no backends configured and an in-memory store."""
    return Settings(
        openai_api_key="",
        anthropic_api_key="",
        vector_store_backend="memory",
    )


@pytest.fixture
def embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def chunker() -> TextChunker:
    return TextChunker(chunk_size=400, overlap_fraction=0.2)
