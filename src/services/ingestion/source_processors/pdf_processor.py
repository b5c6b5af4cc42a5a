"""Document parser for uploaded PDF files.

Reads PDF bytes using PyMuPDF (fitz) and returns the plain text of every
page as :class:`~src.models.rag.PageText`, whitespace-normalised so chunk
offsets are stable.  Pages with no extractable text (scans without an OCR
layer, blank separators) are returned with empty text; the chunker skips
them.
"""

from __future__ import annotations

import re

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from src.models.rag import PageText
from src.utils.errors import DocumentParseError

logger = structlog.get_logger(logger_name=__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_page_text(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim the ends."""
    return _WHITESPACE_RE.sub(" ", text).strip()


class PDFProcessor:
    """Extracts page-oriented text from PDF bytes."""

    def extract_pages(self, data: bytes) -> list[PageText]:
        """Read *data* as a PDF and return one :class:`PageText` per page.

        Raises
        ------
        DocumentParseError
            If *data* is not a readable PDF or the PDF has zero pages.
            A readable PDF whose pages carry no text is **not** an error.
        """
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            logger.error("pdf_open_failed", size=len(data), error=str(exc))
            raise DocumentParseError(
                message=f"File is not a readable PDF: {exc}",
                provider_name="pymupdf",
            ) from exc

        pages: list[PageText] = []
        try:
            page_count = len(doc)
            if page_count == 0:
                raise DocumentParseError(
                    message="PDF has zero pages",
                    provider_name="pymupdf",
                )
            for page_index in range(page_count):
                try:
                    raw = doc[page_index].get_text("text")
                except Exception as exc:
                    raise DocumentParseError(
                        message=f"Could not read page {page_index + 1}: {exc}",
                        provider_name="pymupdf",
                    ) from exc
                pages.append(PageText(page_number=page_index + 1, text=normalize_page_text(raw)))
        finally:
            doc.close()

        empty = sum(1 for p in pages if not p.text)
        if empty == len(pages):
            logger.warning("pdf_no_text_extracted", pages=len(pages))

        logger.info("pdf_processed", pages=len(pages), empty_pages=empty)
        return pages
