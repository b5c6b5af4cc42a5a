"""Source processors for the ingestion pipeline.

- **PDFProcessor** -- uploaded PDF bytes -> per-page plain text via PyMuPDF
"""

from src.services.ingestion.source_processors.pdf_processor import (
    PDFProcessor,
    normalize_page_text,
)

__all__ = ["PDFProcessor", "normalize_page_text"]
