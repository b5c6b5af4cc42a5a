"""Citation marker extraction from generated answers.

The model cites inline as ``[Source: <doc type>, Page <n>]``.  Once an
answer has finished streaming, :class:`CitationExtractor` rescans the full
text, collects every marker as a :class:`~src.models.rag.Citation`
(deduplicated on ``(doc type, page)`` in first-seen order), and produces a
marker-free copy of the answer for display.

Markers are only ever parsed from generated text.  Chunk content is sent
to the model as ``Source: X, Page: N`` blocks without brackets, so text
quoted from a document cannot itself look like a citation to this parser.
"""

from __future__ import annotations

import re

from src.models.rag import AnswerResult, Citation
from src.services.prompt_assembler import NO_CONTEXT_SENTINEL

_CITATION_RE = re.compile(r"\[Source:\s*([^,\]]+),\s*Page\s*(\d+)\]")
_MARKER_RE = re.compile(r"\s*\[Source:[^\]]+\]")


class CitationExtractor:
    """Parses inline citation markers out of answer text."""

    def extract(self, text: str) -> list[Citation]:
        """Return the distinct citations in *text*, in first-seen order."""
        seen: set[tuple[str, int]] = set()
        citations: list[Citation] = []
        for match in _CITATION_RE.finditer(text):
            citation = Citation(
                doc_type=match.group(1).strip(),
                page_number=int(match.group(2)),
            )
            if citation.key in seen:
                continue
            seen.add(citation.key)
            citations.append(citation)
        return citations

    def strip_markers(self, text: str) -> str:
        """Remove every ``[Source: ...]`` marker with the whitespace before it, then trim."""
        return _MARKER_RE.sub("", text).strip()

    def build_result(self, raw_answer: str, context_chunks: int = 0) -> AnswerResult:
        """Turn a completed answer into its final, structured form.

        An answer that is the no-context sentinel passes through unchanged,
        with no citations.
        """
        if raw_answer.strip() == NO_CONTEXT_SENTINEL:
            return AnswerResult(
                answer=NO_CONTEXT_SENTINEL,
                raw_answer=raw_answer,
                citations=[],
                no_context=True,
                context_chunks=context_chunks,
            )
        return AnswerResult(
            answer=self.strip_markers(raw_answer),
            raw_answer=raw_answer,
            citations=self.extract(raw_answer),
            no_context=False,
            context_chunks=context_chunks,
        )
