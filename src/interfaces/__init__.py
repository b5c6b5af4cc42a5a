"""Public interface definitions for the external collaborators of the core.

Every backend the pipelines touch is reached through one of these abstract
base classes.  Concrete adapters live in ``src/providers/`` and are
constructed explicitly in ``src/main.py`` (or the CLI), then passed into
the services.  Tests inject fakes for the same seams.

    Interface             ->  Concrete implementations (in src/providers/)
    ------------------------------------------------------------------
    IEmbeddingProvider    ->  OpenAIEmbeddingProvider, NomicEmbeddingProvider
    ILLMProvider          ->  OpenAILLMProvider, AnthropicLLMProvider,
                              OllamaLLMProvider
    IVectorStoreProvider  ->  ChromaDBProvider, InMemoryVectorStore
"""

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IEmbeddingProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
]
