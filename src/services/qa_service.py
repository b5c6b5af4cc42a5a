"""Grounded question answering over a project's documents.

Data flow for one question (the answering pipeline):

  1. EMBEDDING   -- embed the question with the same provider used at
                    ingestion, so query and chunks share one vector space.
  2. RETRIEVING  -- top-k scoped search in the vector store, filtered to the
                    question's project.
  3a. NO_CONTEXT -- zero chunks: the fixed sentinel is the answer.  The
                    generation backend is never called.
  3b. GENERATING -- assemble prompts and stream the model's answer.  Tokens
                    are forwarded to the caller as they arrive.
  4. EXTRACTING  -- once the stream completes, rescan the full text for
                    ``[Source: X, Page N]`` markers and strip them.
  5. DONE

Failures while embedding or retrieving raise from :meth:`QAService.ask`.
Failures while generating raise from :meth:`AnswerStream.start` or from the
stream iteration; text already forwarded is not retracted.  Nothing is
retried.

Cancellation: if the consuming task is cancelled (client disconnect), or
the caller closes the stream or calls :meth:`AnswerStream.cancel`, the
stream stops forwarding and accumulating and closes the backend stream.
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from typing import TYPE_CHECKING, AsyncIterator

import structlog

from src.models.rag import AnswerResult, AnswerState, SearchResult
from src.services.citation_extractor import CitationExtractor
from src.services.prompt_assembler import NO_CONTEXT_SENTINEL, PromptAssembler
from src.utils.errors import InputValidationError
from src.utils.logging import get_logger

if TYPE_CHECKING:
    from src.interfaces.embedding_provider import IEmbeddingProvider
    from src.interfaces.llm_provider import ILLMProvider
    from src.interfaces.vector_store_provider import IVectorStoreProvider

logger: structlog.BoundLogger = get_logger(__name__)

_TERMINAL_STATES = frozenset({AnswerState.DONE, AnswerState.FAILED, AnswerState.CANCELLED})


class AnswerStream:
    """Async iterator over the text of one answer.

    Iterating yields the answer exactly as generated (citation markers
    inline).  When iteration ends normally, :attr:`result` holds the
    marker-free answer and its deduplicated citations.

    A stream can be consumed once.
    """

    def __init__(
        self,
        tokens: AsyncIterator[str] | None,
        extractor: CitationExtractor,
        context_chunks: int = 0,
        project_id: str = "",
    ) -> None:
        self._tokens = tokens
        self._extractor = extractor
        self._context_chunks = context_chunks
        self._log = logger.bind(project_id=project_id)
        self._parts: list[str] = []
        self._result: AnswerResult | None = None
        self._cancelled = False
        self._iterator: AsyncIterator[str] | None = None
        self._pending: str | None = None
        if tokens is None:
            self._state = AnswerState.NO_CONTEXT
        else:
            self._state = AnswerState.GENERATING

    @classmethod
    def no_context(cls, extractor: CitationExtractor, project_id: str = "") -> AnswerStream:
        """A stream whose whole answer is the sentinel, with no backend stream."""
        return cls(None, extractor, context_chunks=0, project_id=project_id)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> AnswerState:
        return self._state

    @property
    def result(self) -> AnswerResult | None:
        """The final answer, or ``None`` until the stream has completed."""
        return self._result

    @property
    def text(self) -> str:
        """Text forwarded so far."""
        return "".join(self._parts)

    def __aiter__(self) -> AnswerStream:
        return self

    async def __anext__(self) -> str:
        if self._iterator is None:
            self._iterator = self._iterate()
        if self._pending is not None:
            part, self._pending = self._pending, None
            return part
        return await self._iterator.__anext__()

    async def start(self) -> None:
        """Open the backend stream and wait for its first part.

        Errors raised while opening the stream (bad credentials, unreachable
        host) surface here instead of during iteration.  The first part is
        buffered and returned by the next ``__anext__``.  Calling this on a
        stream that has already started does nothing.
        """
        if self._iterator is not None:
            return
        self._iterator = self._iterate()
        try:
            self._pending = await self._iterator.__anext__()
        except StopAsyncIteration:
            self._pending = None

    def cancel(self) -> None:
        """Stop at the next suspension point and release the backend stream."""
        self._cancelled = True

    async def aclose(self) -> None:
        """Cancel the stream and close the backend stream now."""
        self._cancelled = True
        self._pending = None
        if self._iterator is not None:
            await self._iterator.aclose()
        elif self._tokens is not None:
            await self._tokens.aclose()
        if self._state not in _TERMINAL_STATES:
            self._state = AnswerState.CANCELLED

    async def collect(self) -> AnswerResult:
        """Consume the rest of the stream and return the final result."""
        async for _ in self:
            pass
        if self._result is None:
            raise RuntimeError(f"answer stream ended in state {self._state.value}")
        return self._result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _iterate(self) -> AsyncIterator[str]:
        if self._tokens is None:
            self._result = self._extractor.build_result(NO_CONTEXT_SENTINEL)
            self._state = AnswerState.DONE
            yield NO_CONTEXT_SENTINEL
            return

        if self._cancelled:
            await self._tokens.aclose()
            self._state = AnswerState.CANCELLED
            return

        try:
            async with aclosing(self._tokens) as tokens:
                async for part in tokens:
                    if self._cancelled:
                        break
                    self._parts.append(part)
                    yield part
                    if self._cancelled:
                        break
        except (GeneratorExit, asyncio.CancelledError):
            self._state = AnswerState.CANCELLED
            self._log.info("answer_cancelled", forwarded_chars=len(self.text))
            raise
        except Exception as exc:
            self._state = AnswerState.FAILED
            self._log.error(
                "answer_generation_failed",
                error=str(exc),
                forwarded_chars=len(self.text),
            )
            raise

        if self._cancelled:
            self._state = AnswerState.CANCELLED
            self._log.info("answer_cancelled", forwarded_chars=len(self.text))
            return

        self._state = AnswerState.EXTRACTING
        self._result = self._extractor.build_result(
            self.text, context_chunks=self._context_chunks
        )
        self._state = AnswerState.DONE
        self._log.info(
            "answer_complete",
            chars=len(self._result.raw_answer),
            citations=len(self._result.citations),
            no_context=self._result.no_context,
        )


class QAService:
    """Answers questions about one project's documents.

    Parameters
    ----------
    embedding_provider:
        Must be the provider the project's chunks were embedded with.
    vector_store:
        Read-only here; searches are always scoped by project id.
    llm:
        Streaming generation backend.
    prompt_assembler, citation_extractor:
        Default instances are created when omitted.
    top_k:
        Number of chunks retrieved as context.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        llm: ILLMProvider,
        prompt_assembler: PromptAssembler | None = None,
        citation_extractor: CitationExtractor | None = None,
        top_k: int = 8,
        temperature: float = 0.2,
        max_tokens: int = 2048,
    ) -> None:
        if top_k < 1:
            raise ValueError(f"top_k must be positive, got {top_k}")
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._llm = llm
        self._prompt_assembler = prompt_assembler or PromptAssembler()
        self._citation_extractor = citation_extractor or CitationExtractor()
        self._top_k = top_k
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def citation_extractor(self) -> CitationExtractor:
        return self._citation_extractor

    async def ask(self, query: str, project_id: str) -> AnswerStream:
        """Retrieve context for *query* and open the answer stream.

        Raises
        ------
        InputValidationError
            Empty query or project id; raised before any backend call.
        EmbeddingError, VectorStoreError
            The question could not be embedded or the store searched.
        """
        query, project_id = self._validate(query, project_id)
        log = logger.bind(project_id=project_id)

        log.debug("answer_state", state=AnswerState.EMBEDDING.value)
        try:
            query_vector = await self._embedding_provider.embed_single(query)
            log.debug("answer_state", state=AnswerState.RETRIEVING.value)
            results = await self.retrieve(project_id, query_vector)
        except Exception as exc:
            log.error("answer_state", state=AnswerState.FAILED.value, error=str(exc))
            raise

        if not results:
            log.info("answer_no_context", query_length=len(query))
            return AnswerStream.no_context(self._citation_extractor, project_id=project_id)

        prompt = self._prompt_assembler.assemble(query, results)
        log.info(
            "answer_generating",
            context_chunks=prompt.context_chunks,
            top_score=round(results[0].similarity_score, 4),
            provider=self._llm.get_provider_name(),
        )
        tokens = self._llm.stream(
            prompt.system,
            prompt.user,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        return AnswerStream(
            tokens,
            self._citation_extractor,
            context_chunks=prompt.context_chunks,
            project_id=project_id,
        )

    async def answer(self, query: str, project_id: str) -> AnswerResult:
        """Non-streaming variant of :meth:`ask`: wait for the final result."""
        stream = await self.ask(query, project_id)
        return await stream.collect()

    async def retrieve(self, project_id: str, query_vector: list[float]) -> list[SearchResult]:
        return await self._vector_store.search(project_id, query_vector, top_k=self._top_k)

    @staticmethod
    def _validate(query: str, project_id: str) -> tuple[str, str]:
        if not project_id or not project_id.strip():
            raise InputValidationError(message="project_id is required")
        if not query or not query.strip():
            raise InputValidationError(message="query must not be empty")
        return query.strip(), project_id.strip()
