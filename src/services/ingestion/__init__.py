"""Document ingestion pipeline for the project knowledge base.

Orchestrates the full pipeline: **parse -> chunk -> embed -> store**.

1. **Parse** (source_processors/) -- PDFProcessor turns upload bytes into
   per-page plain text.

2. **Chunk** (chunker.py / TextChunker) -- Splits each page into
   overlapping fixed-size windows; a chunk never crosses a page.

3. **Embed** (via IEmbeddingProvider) -- Batched, concurrent, rejoined in
   chunk order.

4. **Store** (via IVectorStoreProvider) -- One all-or-nothing insert per
   upload.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService

__all__ = [
    "IngestionService",
    "TextChunker",
]
