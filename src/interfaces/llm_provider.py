"""Abstract base class for streaming text-generation providers.

The answering pipeline consumes generation incrementally: it forwards each
piece of text to the caller as soon as it arrives and only looks at the
whole answer once the stream is exhausted.  Providers therefore expose
generation as an async iterator rather than a single call-and-return.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator


# Concrete implementations: AnthropicLLMProvider, OpenAILLMProvider, OllamaLLMProvider
# Located in: src/providers/llm/
class ILLMProvider(ABC):
    """Contract for the generation backend."""

    @abstractmethod
    def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 2048,
    ) -> AsyncIterator[str]:
        """Stream a completion as successive text fragments.

        Implementations are async generators.  Each suspension point is an
        await on the next fragment from the backend, so cancelling the
        consuming task or calling ``aclose()`` on the iterator releases the
        backend stream promptly.

        Parameters
        ----------
        system_prompt:
            Instructions that set the model's behaviour.
        user_prompt:
            The retrieved context and the user's question.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on generated tokens.

        Yields
        ------
        str
            Non-empty text fragments in generation order.

        Raises
        ------
        src.utils.errors.GenerationError
            If the stream cannot be opened or breaks mid-way.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier used in logs and error messages."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Checks credentials or configuration only; never runs inference.
        """
