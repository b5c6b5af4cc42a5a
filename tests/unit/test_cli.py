"""Unit tests for the knowledge base CLI (src.cli.ingest)."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from src.models.rag import PageText
from src.providers.vector_store.memory_provider import InMemoryVectorStore
from src.services.citation_extractor import CitationExtractor
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.qa_service import QAService
from src.utils.errors import EmbeddingError
from tests.conftest import FakePDFProcessor, MockEmbeddingProvider, MockLLMProvider


# ======================================================================
# Shared helpers
# ======================================================================


def _components(
    pages: list[PageText] | None = None,
    parts: list[str] | None = None,
    store: InMemoryVectorStore | None = None,
) -> dict[str, Any]:
    embedder = MockEmbeddingProvider()
    store = store or InMemoryVectorStore()
    pdf = FakePDFProcessor(pages if pages is not None else [PageText(page_number=1, text="Weld seams are inspected daily.")])
    return {
        "vector_store": store,
        "ingestion_service": IngestionService(
            chunker=TextChunker(chunk_size=400, overlap_fraction=0.2),
            embedding_provider=embedder,
            vector_store=store,
            pdf_processor=pdf,
        ),
        "qa_service": QAService(
            embedding_provider=embedder,
            vector_store=store,
            llm=MockLLMProvider(parts=parts),
            citation_extractor=CitationExtractor(),
        ),
    }


def _run(argv: list[str], components: dict[str, Any]) -> int:
    with patch("src.cli.ingest._build_components", return_value=components):
        from src.cli.ingest import main

        with pytest.raises(SystemExit) as exc_info:
            main(argv)
    return int(exc_info.value.code)


@pytest.fixture
def pdf_file(tmp_path: Path) -> Path:
    path = tmp_path / "sop.pdf"
    path.write_bytes(b"%PDF-1.4 fake bytes")
    return path


# ======================================================================
# Tests
# ======================================================================


class TestIngestCommand:
    def test_ingest_stores_chunks(self, pdf_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        components = _components()

        code = _run(
            ["ingest", "--project", "acme", "--doc-type", "SOP", "--file", str(pdf_file)],
            components,
        )

        out = capsys.readouterr().out
        assert code == 0
        assert "Successfully processed and stored 1 text chunks." in out
        assert "Pages:        1" in out

    def test_empty_pdf_reports_no_content(
        self, pdf_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = _run(
            ["ingest", "--project", "acme", "--doc-type", "SOP", "--file", str(pdf_file)],
            _components(pages=[PageText(page_number=1, text="")]),
        )

        out = capsys.readouterr().out
        assert code == 0
        assert "PDF parsing resulted in no text content." in out
        assert "Nothing was stored" in out

    def test_missing_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code = _run(
            ["ingest", "--project", "acme", "--doc-type", "SOP", "--file", str(tmp_path / "nope.pdf")],
            _components(),
        )
        assert code == 1
        assert "file not found" in capsys.readouterr().err

    def test_bad_doc_type_is_reported(
        self, pdf_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = _run(
            ["ingest", "--project", "acme", "--doc-type", "Invoice", "--file", str(pdf_file)],
            _components(),
        )
        assert code == 1
        assert "InputValidationError" in capsys.readouterr().err

    def test_without_embedding_provider(
        self, pdf_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        components = {"vector_store": InMemoryVectorStore(), "ingestion_service": None, "qa_service": None}
        code = _run(
            ["ingest", "--project", "acme", "--doc-type", "SOP", "--file", str(pdf_file)],
            components,
        )
        assert code == 1
        assert "no embedding provider" in capsys.readouterr().err


class TestAskCommand:
    def test_streams_answer_and_sources(
        self, pdf_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        components = _components(parts=["Daily ", "[Source: SOP, Page 1]."])
        _run(["ingest", "--project", "acme", "--doc-type", "SOP", "--file", str(pdf_file)], components)
        capsys.readouterr()

        code = _run(["ask", "--project", "acme", "How often are welds inspected?"], components)

        out = capsys.readouterr().out
        assert code == 0
        assert "Daily [Source: SOP, Page 1]." in out
        assert "Sources:" in out
        assert "  - SOP, page 1" in out

    def test_empty_project_prints_sentinel(self, capsys: pytest.CaptureFixture[str]) -> None:
        code = _run(["ask", "--project", "empty", "Anything?"], _components())

        out = capsys.readouterr().out
        assert code == 0
        assert out.startswith("I could not find any relevant information")
        assert "Sources:" not in out

    def test_backend_error_exits_nonzero(self, capsys: pytest.CaptureFixture[str]) -> None:
        components = _components()
        with patch.object(
            MockEmbeddingProvider, "embed_single", side_effect=EmbeddingError("down", provider_name="mock")
        ):
            code = _run(["ask", "--project", "acme", "Anything?"], components)

        assert code == 1
        assert "EmbeddingError" in capsys.readouterr().err


class TestStatsCommand:
    def test_stats(self, pdf_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        components = _components()
        _run(["ingest", "--project", "acme", "--doc-type", "SOP", "--file", str(pdf_file)], components)
        capsys.readouterr()

        code = _run(["stats", "--project", "acme"], components)

        out = capsys.readouterr().out
        assert code == 0
        assert "Total chunks:     1" in out
        assert "Total documents:  1" in out
        assert "SOP" in out


def test_no_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    from src.cli.ingest import main

    with pytest.raises(SystemExit) as exc_info:
        main([])

    assert exc_info.value.code == 1
    assert "usage:" in capsys.readouterr().out
