"""Integration tests for the document ingestion pipeline.

Verifies end-to-end ingestion of project PDFs (parse -> chunk -> embed ->
store) and the answering round trip over what was stored, using mock
embedding and generation providers and the in-memory vector store (no
real API calls).
"""

from __future__ import annotations

import hashlib
import string
import threading

import fitz
import pytest

from src.models.rag import DocType, IngestionStatus, PageText
from src.providers.vector_store.memory_provider import InMemoryVectorStore
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.qa_service import QAService
from src.utils.errors import (
    DocumentParseError,
    EmbeddingError,
    InputValidationError,
    VectorStoreError,
)
from tests.conftest import FakePDFProcessor, MockEmbeddingProvider, MockLLMProvider

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _page_text(length: int) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(alphabet[i % len(alphabet)] for i in range(length))


def _build_service(
    pages: list[PageText],
    embedder: MockEmbeddingProvider | None = None,
    store: InMemoryVectorStore | None = None,
    **kwargs,
) -> tuple[IngestionService, MockEmbeddingProvider, InMemoryVectorStore, FakePDFProcessor]:
    embedder = embedder or MockEmbeddingProvider()
    store = store or InMemoryVectorStore()
    pdf = FakePDFProcessor(pages)
    service = IngestionService(
        chunker=TextChunker(chunk_size=400, overlap_fraction=0.2),
        embedding_provider=embedder,
        vector_store=store,
        pdf_processor=pdf,
        **kwargs,
    )
    return service, embedder, store, pdf


class _FailingEmbedder(MockEmbeddingProvider):
    """Fails on the N-th batch (1-based)."""

    def __init__(self, fail_on_batch: int) -> None:
        super().__init__()
        self._fail_on_batch = fail_on_batch

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(list(texts))
        if len(self.batches) == self._fail_on_batch:
            raise EmbeddingError("quota exhausted", provider_name="mock-embedding")
        return [await self.embed_single(t) for t in texts]


class _FailingStore(InMemoryVectorStore):
    async def insert(self, chunks, embeddings):  # noqa: ANN001, ANN201
        raise VectorStoreError("store offline", provider_name="memory")


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestIngestPdf:
    @pytest.mark.asyncio
    async def test_single_page_is_split_into_overlapping_chunks(self) -> None:
        text = _page_text(1000)
        service, _, store, _ = _build_service([PageText(page_number=7, text=text)])

        result = await service.ingest_pdf("proj-a", "SOP", b"%PDF fake")

        assert result.status is IngestionStatus.STORED
        assert result.chunks_stored == 3
        assert result.pages == 1
        assert result.message == "Successfully processed and stored 3 text chunks."

        chunks = await store.list_chunks("proj-a")
        assert [(c.start_offset, c.end_offset) for c in chunks] == [(0, 400), (320, 720), (640, 1000)]
        assert all(c.page_number == 7 for c in chunks)
        assert all(c.doc_type is DocType.SOP for c in chunks)
        assert all(c.text == text[c.start_offset : c.end_offset] for c in chunks)
        assert len({c.chunk_id for c in chunks}) == 3

    @pytest.mark.asyncio
    async def test_chunks_never_span_pages(self) -> None:
        pages = [
            PageText(page_number=1, text=_page_text(500)),
            PageText(page_number=2, text=""),
            PageText(page_number=3, text=_page_text(150)),
        ]
        service, _, store, _ = _build_service(pages)

        result = await service.ingest_pdf("proj-a", DocType.BASELINE_REPORT, b"%PDF fake")

        chunks = await store.list_chunks("proj-a")
        assert result.pages == 3
        assert [c.page_number for c in chunks] == [1, 1, 3]
        assert chunks[-1].text == pages[2].text

    @pytest.mark.asyncio
    async def test_document_id_is_content_hash(self) -> None:
        data = b"%PDF identical bytes"
        service, _, store, _ = _build_service([PageText(page_number=1, text="short text")])

        result = await service.ingest_pdf("proj-a", "SOP", data)

        assert result.document_id == hashlib.sha256(data).hexdigest()
        assert (await store.list_chunks("proj-a"))[0].document_id == result.document_id

    @pytest.mark.asyncio
    async def test_embedding_batches_preserve_order(self) -> None:
        text = _page_text(2000)
        service, embedder, store, _ = _build_service(
            [PageText(page_number=1, text=text)], embed_batch_size=2, embed_concurrency=1
        )

        await service.ingest_pdf("proj-a", "SOP", b"%PDF fake")

        chunks = await store.list_chunks("proj-a")
        assert [len(batch) for batch in embedder.batches] == [2, 2, 2]
        assert [t for batch in embedder.batches for t in batch] == [c.text for c in chunks]

    @pytest.mark.asyncio
    async def test_stored_vectors_match_their_chunks(self) -> None:
        service, embedder, store, _ = _build_service(
            [PageText(page_number=1, text=_page_text(1000))], embed_batch_size=1, embed_concurrency=4
        )
        await service.ingest_pdf("proj-a", "SOP", b"%PDF fake")

        for chunk in await store.list_chunks("proj-a"):
            best = await store.search("proj-a", await embedder.embed_single(chunk.text), top_k=1)
            assert best[0].chunk.chunk_id == chunk.chunk_id

    @pytest.mark.asyncio
    async def test_textless_pdf_returns_no_content(self) -> None:
        service, embedder, store, _ = _build_service(
            [PageText(page_number=1, text=""), PageText(page_number=2, text="")]
        )

        result = await service.ingest_pdf("proj-a", "SOP", b"%PDF scanned")

        assert result.status is IngestionStatus.NO_CONTENT
        assert result.chunks_stored == 0
        assert result.message == "PDF parsing resulted in no text content."
        assert embedder.batches == []
        assert (await store.get_stats("proj-a")).total_chunks == 0

    @pytest.mark.asyncio
    async def test_pdf_is_parsed_off_the_event_loop(self) -> None:
        class _ThreadRecordingPDF(FakePDFProcessor):
            def extract_pages(self, data: bytes) -> list[PageText]:
                self.thread_id = threading.get_ident()
                return super().extract_pages(data)

        pdf = _ThreadRecordingPDF([PageText(page_number=1, text="short text")])
        service = IngestionService(
            chunker=TextChunker(chunk_size=400, overlap_fraction=0.2),
            embedding_provider=MockEmbeddingProvider(),
            vector_store=InMemoryVectorStore(),
            pdf_processor=pdf,
        )

        result = await service.ingest_pdf("proj-a", "SOP", b"%PDF fake")

        assert result.status is IngestionStatus.STORED
        assert pdf.thread_id != threading.get_ident()

    @pytest.mark.asyncio
    async def test_real_pdf_bytes(self) -> None:
        doc = fitz.open()
        page = doc.new_page()
        page.insert_text((72, 72), "All gauges are calibrated\nevery six months.")
        data = doc.tobytes()
        doc.close()

        store = InMemoryVectorStore()
        service = IngestionService(
            chunker=TextChunker(chunk_size=400, overlap_fraction=0.2),
            embedding_provider=MockEmbeddingProvider(),
            vector_store=store,
        )

        result = await service.ingest_pdf("proj-a", "ZED Guideline", data, filename="guide.pdf")

        assert result.status is IngestionStatus.STORED
        chunks = await store.list_chunks("proj-a")
        assert chunks[0].text == "All gauges are calibrated every six months."
        assert chunks[0].doc_type is DocType.ZED_GUIDELINE


class TestIngestFailures:
    @pytest.mark.asyncio
    async def test_embedding_failure_stores_nothing(self) -> None:
        service, embedder, store, _ = _build_service(
            [PageText(page_number=1, text=_page_text(2000))],
            embedder=_FailingEmbedder(fail_on_batch=2),
            embed_batch_size=2,
            embed_concurrency=1,
        )

        with pytest.raises(EmbeddingError):
            await service.ingest_pdf("proj-a", "SOP", b"%PDF fake")

        assert (await store.get_stats("proj-a")).total_chunks == 0

    @pytest.mark.asyncio
    async def test_unexpected_embedder_exception_is_wrapped(self) -> None:
        class _Broken(MockEmbeddingProvider):
            async def embed(self, texts: list[str]) -> list[list[float]]:
                raise ConnectionResetError("peer reset")

        service, _, store, _ = _build_service(
            [PageText(page_number=1, text="text")], embedder=_Broken()
        )

        with pytest.raises(EmbeddingError, match="peer reset"):
            await service.ingest_pdf("proj-a", "SOP", b"%PDF fake")

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self) -> None:
        service, _, _, _ = _build_service(
            [PageText(page_number=1, text="text")], store=_FailingStore()
        )

        with pytest.raises(VectorStoreError):
            await service.ingest_pdf("proj-a", "SOP", b"%PDF fake")

    @pytest.mark.asyncio
    async def test_unreadable_pdf(self) -> None:
        store = InMemoryVectorStore()
        service = IngestionService(
            chunker=TextChunker(),
            embedding_provider=MockEmbeddingProvider(),
            vector_store=store,
        )

        with pytest.raises(DocumentParseError):
            await service.ingest_pdf("proj-a", "SOP", b"plain text, not a pdf")

    @pytest.mark.parametrize(
        ("project_id", "doc_type", "data"),
        [
            ("", "SOP", b"%PDF"),
            ("   ", "SOP", b"%PDF"),
            ("proj-a", "", b"%PDF"),
            ("proj-a", "Invoice", b"%PDF"),
            ("proj-a", "SOP", b""),
            ("proj-a", "SOP", b"x" * 11),
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_input_rejected_before_parsing(
        self, project_id: str, doc_type: str, data: bytes
    ) -> None:
        service, embedder, _, pdf = _build_service(
            [PageText(page_number=1, text="text")], max_upload_bytes=10
        )

        with pytest.raises(InputValidationError):
            await service.ingest_pdf(project_id, doc_type, data)

        assert pdf.calls == []
        assert embedder.batches == []


class TestProjectViews:
    @pytest.mark.asyncio
    async def test_stats_and_listing(self) -> None:
        service, _, _, _ = _build_service([PageText(page_number=1, text=_page_text(1000))])
        await service.ingest_pdf("proj-a", "SOP", b"%PDF one")
        await service.ingest_pdf("proj-a", "Baseline Report", b"%PDF two")

        stats = await service.get_project_stats("proj-a")
        assert stats.total_chunks == 6
        assert stats.total_documents == 2
        assert stats.chunks_by_doc_type == {"SOP": 3, "Baseline Report": 3}

        listed = await service.list_project_chunks("proj-a", limit=4)
        assert len(listed) == 4
        assert [c.doc_type for c in listed] == [DocType.SOP] * 3 + [DocType.BASELINE_REPORT]

    @pytest.mark.asyncio
    async def test_listing_limit_must_be_positive(self) -> None:
        service, _, _, _ = _build_service([])
        with pytest.raises(InputValidationError):
            await service.list_project_chunks("proj-a", limit=0)


class TestIngestThenAnswer:
    @pytest.mark.asyncio
    async def test_answer_cites_ingested_pages(self) -> None:
        pages = [
            PageText(page_number=1, text="Scope: this SOP covers gauge calibration."),
            PageText(page_number=2, text="Gauges are calibrated every six months by QA."),
        ]
        service, embedder, store, _ = _build_service(pages)
        await service.ingest_pdf("proj-a", "SOP", b"%PDF sop")

        llm = MockLLMProvider(parts=["Every six months ", "[Source: SOP, Page 2]."])
        qa = QAService(embedding_provider=embedder, vector_store=store, llm=llm)

        result = await qa.answer("How often are gauges calibrated?", "proj-a")

        assert result.answer == "Every six months."
        assert [(c.doc_type, c.page_number) for c in result.citations] == [("SOP", 2)]
        assert result.context_chunks == 2
        user_prompt = str(llm.calls[0]["user"])
        assert "Source: SOP, Page: 2\nContent: Gauges are calibrated every six months by QA." in user_prompt

    @pytest.mark.asyncio
    async def test_other_projects_documents_are_invisible(self) -> None:
        service, embedder, store, _ = _build_service(
            [PageText(page_number=1, text="Confidential to project B.")]
        )
        await service.ingest_pdf("proj-b", "SOP", b"%PDF b")

        llm = MockLLMProvider()
        qa = QAService(embedding_provider=embedder, vector_store=store, llm=llm)
        result = await qa.answer("What is confidential?", "proj-a")

        assert result.no_context is True
        assert llm.calls == []
