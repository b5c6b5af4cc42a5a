"""Knowledge base FastAPI application entry point.

Wires together providers, services, and routes via dependency injection.
Loads configuration from the environment, ``.env`` and ``config/config.yaml``
and configures structured logging.  Every component receives its
collaborators explicitly; nothing reads API keys from ambient state.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.services.citation_extractor import CitationExtractor
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.prompt_assembler import PromptAssembler
from src.services.qa_service import QAService
from src.utils.errors import ConfigurationError
from src.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)

_APP_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Select the first available LLM provider based on configured API keys.

    Priority order: Anthropic -> OpenAI -> Ollama (always available).
    """
    if app_settings.anthropic_api_key:
        return AnthropicLLMProvider(settings=app_settings)
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    return OllamaLLMProvider(settings=app_settings)


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider | None:
    """Select the first available embedding provider.

    Priority: OpenAI/OpenAI-compatible (if API key set) ->
              Nomic/Ollama (if reachable).
    Returns ``None`` if no embedding provider is available.
    """
    if app_settings.openai_api_key:
        from src.providers.embedding.openai_embedding_provider import (
            OpenAIEmbeddingProvider,
        )

        provider: IEmbeddingProvider = OpenAIEmbeddingProvider(settings=app_settings)
        if provider.is_available():
            return provider

    from src.providers.embedding.nomic_embedding_provider import (
        NomicEmbeddingProvider,
    )

    provider = NomicEmbeddingProvider(settings=app_settings)
    if provider.is_available():
        return provider

    return None


def _build_vector_store(
    app_settings: Settings,
    embedding_provider: IEmbeddingProvider | None = None,
) -> IVectorStoreProvider:
    """Construct the vector store named by ``vector_store_backend``.

    Raises
    ------
    ConfigurationError
        If the backend name is not ``chromadb`` or ``memory``.
    """
    backend = app_settings.vector_store_backend.strip().lower()
    if backend == "memory":
        from src.providers.vector_store.memory_provider import InMemoryVectorStore

        return InMemoryVectorStore()
    if backend == "chromadb":
        from src.providers.vector_store.chromadb_provider import ChromaDBProvider

        return ChromaDBProvider(
            persist_directory=app_settings.chromadb_persist_dir,
            collection_name=app_settings.chromadb_collection,
            embedding_provider=embedding_provider,
        )
    raise ConfigurationError(
        message=(
            f"Unknown vector_store_backend {app_settings.vector_store_backend!r}; "
            "expected 'chromadb' or 'memory'"
        )
    )


def _build_chunker(app_settings: Settings) -> TextChunker:
    try:
        return TextChunker.from_token_budget(
            app_settings.chunk_size_tokens,
            chars_per_token=app_settings.chars_per_token,
            overlap_fraction=app_settings.chunk_overlap,
        )
    except ValueError as exc:
        raise ConfigurationError(message=f"Invalid chunking settings: {exc}") from exc


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    Without an embedding provider neither pipeline can run, so both
    services are ``None`` and the routes answer 503.
    """
    embedding_provider = _build_embedding_provider(app_settings)
    vector_store = _build_vector_store(app_settings, embedding_provider)
    llm = _build_llm_provider(app_settings)
    citation_extractor = CitationExtractor()

    ingestion_service: IngestionService | None = None
    qa_service: QAService | None = None
    if embedding_provider is not None:
        ingestion_service = IngestionService(
            chunker=_build_chunker(app_settings),
            embedding_provider=embedding_provider,
            vector_store=vector_store,
            embed_batch_size=app_settings.embed_batch_size,
            embed_concurrency=app_settings.embed_concurrency,
            max_upload_bytes=app_settings.max_upload_bytes,
        )
        qa_service = QAService(
            embedding_provider=embedding_provider,
            vector_store=vector_store,
            llm=llm,
            prompt_assembler=PromptAssembler(),
            citation_extractor=citation_extractor,
            top_k=app_settings.retrieval_top_k,
            temperature=app_settings.generation_temperature,
            max_tokens=app_settings.generation_max_tokens,
        )
    else:
        _logger.warning(
            "no_embedding_provider",
            msg="No embedding provider available. Ingestion and answering disabled.",
        )

    provider_registry: dict[str, bool] = {
        "llm": llm.is_available(),
        "embedding": embedding_provider is not None,
    }

    return {
        "settings": app_settings,
        "embedding_provider": embedding_provider,
        "vector_store": vector_store,
        "llm": llm,
        "citation_extractor": citation_extractor,
        "ingestion_service": ingestion_service,
        "qa_service": qa_service,
        "provider_registry": provider_registry,
        "primary_llm_name": llm.get_provider_name(),
        "embedding_provider_name": (
            embedding_provider.get_provider_name() if embedding_provider else None
        ),
    }


def build_services(custom_settings: Settings | None = None) -> dict[str, Any]:
    """Build the full component set for CLI or scripting use outside the server."""
    return _build_all(custom_settings or settings)


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise providers and services on startup.

    Components placed on ``application.state.components`` before startup
    (tests) are used as-is instead of being built from settings.
    """
    components = getattr(application.state, "components", None)
    if components is None:
        components = _build_all(application.state.settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    vector_store = components.get("vector_store")
    _logger.info(
        "app_startup",
        version=_APP_VERSION,
        environment=application.state.settings.app_env,
        primary_llm=components.get("primary_llm_name"),
        embedding=components.get("embedding_provider_name"),
        vector_store=vector_store.get_provider_name() if vector_store else None,
    )

    yield

    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    components: dict[str, Any] | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="ZED Knowledge API",
        version=_APP_VERSION,
        description=(
            "Upload project documents (ZED guidelines, SOPs, baseline reports) "
            "and ask questions answered only from them, with page-level citations."
        ),
        lifespan=_lifespan,
    )
    application.state.settings = app_settings or settings
    if components is not None:
        application.state.components = {"settings": application.state.settings, **components}

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
