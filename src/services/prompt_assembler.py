"""Prompt assembly for grounded, cited answers.

Builds the system and user prompts sent to the generation backend from the
chunks retrieved for a query.  Each chunk becomes a labelled context block:

    Source: SOP, Page: 5
    Content: <chunk text>

Blocks are joined with a ``---`` separator and followed by the question.
The system prompt tells the model to answer only from that context, to put
an inline ``[Source: <doc type>, Page <n>]`` marker next to every claim,
and to answer with :data:`NO_CONTEXT_SENTINEL` verbatim when the context
is not enough.
"""

from __future__ import annotations

from dataclasses import dataclass

from src.models.rag import SearchResult

# Returned verbatim whenever there is nothing to ground an answer in.
# Client UIs match on this exact string; never reword or localise it.
NO_CONTEXT_SENTINEL = (
    "I could not find any relevant information in the uploaded documents for "
    "this project to answer your question. Please verify that the necessary "
    "documents have been uploaded and processed, or try rephrasing your "
    "question to be more specific."
)

CONTEXT_SEPARATOR = "\n\n---\n\n"

_SYSTEM_PROMPT = (
    "You are an expert assistant for ZED (Zero Effect, Zero Defect) "
    "consultants. Answer the user's question based ONLY on the provided "
    "context from the project documents.\n"
    "\n"
    "Rules:\n"
    "1. Use only the information in the context. Do not use outside "
    "knowledge and do not make anything up.\n"
    "2. After every statement drawn from the context, cite its source "
    "inline in exactly this form: [Source: <document type>, Page <page "
    "number>], for example [Source: SOP-01, Page 5].\n"
    "3. If the context does not contain enough information to answer, "
    "reply with exactly this sentence and nothing else:\n"
    f"{NO_CONTEXT_SENTINEL}\n"
    "4. Do not add any preamble such as \"Based on the context\". Answer "
    "the question directly."
)


@dataclass(frozen=True)
class AssembledPrompt:
    """The two prompt halves plus how many chunks went into them."""

    system: str
    user: str
    context_chunks: int


def format_context_block(result: SearchResult) -> str:
    chunk = result.chunk
    return (
        f"Source: {chunk.doc_type.value}, Page: {chunk.page_number}\n"
        f"Content: {chunk.text.strip()}"
    )


class PromptAssembler:
    """Turns retrieved chunks and a question into generation prompts."""

    def __init__(self, system_prompt: str = _SYSTEM_PROMPT) -> None:
        self._system_prompt = system_prompt

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    def build_context(self, results: list[SearchResult]) -> str:
        """Join the context blocks of *results* in retrieval order."""
        return CONTEXT_SEPARATOR.join(format_context_block(r) for r in results)

    def assemble(self, query: str, results: list[SearchResult]) -> AssembledPrompt:
        """Build the prompts for *query* grounded in *results*.

        *results* must be non-empty; an empty retrieval is answered with
        :data:`NO_CONTEXT_SENTINEL` without calling the model at all.
        """
        if not results:
            raise ValueError("cannot assemble a prompt without context")
        user = (
            "CONTEXT:\n"
            f"{self.build_context(results)}\n"
            "\n"
            "QUESTION:\n"
            f"{query}"
        )
        return AssembledPrompt(
            system=self._system_prompt,
            user=user,
            context_chunks=len(results),
        )
