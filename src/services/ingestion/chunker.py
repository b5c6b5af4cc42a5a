"""Page-scoped text chunking with fixed-fraction overlapping windows.

Splits each :class:`~src.models.rag.PageText` into
:class:`~src.models.rag.DocumentChunk` objects sized for embedding models.

Window geometry, for a chunk size of ``S`` characters and overlap fraction
``f``:

    step  T = S - floor(S * f)
    page of length n <= S     -> one chunk, the whole page
    page of length n >  S     -> windows [0, S), [T, T + S), [2T, 2T + S) ...
                                 until a window reaches the end of the page

The last window may be shorter than ``S``.  Consecutive windows overlap by
exactly ``floor(S * f)`` characters, so a sentence cut at one boundary is
whole in the neighbouring chunk.  Windows never cross a page boundary,
because the page number is what citations point at.
"""

from __future__ import annotations

import math
import uuid

import structlog

from src.models.rag import DocType, DocumentChunk, PageText

logger = structlog.get_logger(logger_name=__name__)


class TextChunker:
    """Splits page text into overlapping fixed-size character windows.

    Parameters
    ----------
    chunk_size:
        Window width ``S`` in characters (default 1200, i.e. 300 tokens at
        4 characters per token).
    overlap_fraction:
        Fraction ``f`` of the window shared with the next one (default 0.2).

    Raises
    ------
    ValueError
        If ``chunk_size < 1`` or ``overlap_fraction`` is outside ``[0, 1)``,
        or the combination leaves a step of zero characters.
    """

    def __init__(self, chunk_size: int = 1200, overlap_fraction: float = 0.2) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if not 0.0 <= overlap_fraction < 1.0:
            raise ValueError(f"overlap_fraction must be in [0, 1), got {overlap_fraction}")
        self._chunk_size = chunk_size
        self._overlap = math.floor(chunk_size * overlap_fraction)
        self._step = chunk_size - self._overlap
        if self._step < 1:
            raise ValueError(
                f"chunk_size={chunk_size} with overlap_fraction={overlap_fraction} "
                "leaves no forward step"
            )

    @classmethod
    def from_token_budget(
        cls,
        tokens: int,
        chars_per_token: int = 4,
        overlap_fraction: float = 0.2,
    ) -> TextChunker:
        """Build a chunker whose window is ``tokens * chars_per_token`` characters."""
        return cls(chunk_size=tokens * chars_per_token, overlap_fraction=overlap_fraction)

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    @property
    def step(self) -> int:
        return self._step

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def windows(self, text: str) -> list[tuple[int, int]]:
        """Return the ``(start, end)`` character ranges covering *text*.

        Empty text has no windows.
        """
        length = len(text)
        if length == 0:
            return []
        spans: list[tuple[int, int]] = []
        start = 0
        while True:
            end = min(start + self._chunk_size, length)
            spans.append((start, end))
            if end >= length:
                return spans
            start += self._step

    def chunk_page(
        self,
        page: PageText,
        *,
        project_id: str,
        doc_type: DocType,
        document_id: str = "",
    ) -> list[DocumentChunk]:
        """Split one page into chunks carrying the page's number."""
        return [
            DocumentChunk(
                chunk_id=str(uuid.uuid4()),
                project_id=project_id,
                document_id=document_id,
                doc_type=doc_type,
                page_number=page.page_number,
                text=page.text[start:end],
                start_offset=start,
                end_offset=end,
            )
            for start, end in self.windows(page.text)
        ]

    def chunk(
        self,
        pages: list[PageText],
        *,
        project_id: str,
        doc_type: DocType,
        document_id: str = "",
    ) -> list[DocumentChunk]:
        """Chunk every page in order.  Empty pages contribute nothing.

        Returns
        -------
        list[DocumentChunk]
            Chunks in page order, then offset order.  An all-empty document
            returns an empty list.
        """
        chunks: list[DocumentChunk] = []
        for page in pages:
            chunks.extend(
                self.chunk_page(
                    page,
                    project_id=project_id,
                    doc_type=doc_type,
                    document_id=document_id,
                )
            )

        logger.debug(
            "text_chunked",
            pages=len(pages),
            chunks=len(chunks),
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks
