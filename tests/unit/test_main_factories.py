"""Unit tests for factory functions in src/main.py.

Tests the LLM provider selection, embedding provider selection, vector
store selection, chunker settings validation, full component assembly,
and the create_app factory, all with mocked external dependencies so no
real network calls or API keys are required.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI

from src.config.settings import Settings
from src.utils.errors import ConfigurationError


# ======================================================================
# Shared helpers
# ======================================================================


def _settings(**overrides) -> Settings:
    """Build a Settings instance with safe defaults and optional overrides.

    All API keys default to empty strings so the Ollama/None fallback
    is exercised unless explicitly overridden.
    """
    defaults = {
        "openai_api_key": "",
        "openai_base_url": "",
        "openai_text_model": "",
        "openai_embedding_model": "",
        "anthropic_api_key": "",
        "ollama_base_url": "http://localhost:11434",
        "vector_store_backend": "memory",
        "app_env": "test",
    }
    defaults.update(overrides)
    return Settings(**defaults)


# ======================================================================
# _build_llm_provider
# ======================================================================


class TestBuildLLMProvider:
    """Provider priority order: Anthropic, then OpenAI, then Ollama."""

    def test_anthropic_first(self) -> None:
        from src.main import _build_llm_provider

        provider = _build_llm_provider(_settings(anthropic_api_key="a", openai_api_key="o"))
        assert provider.get_provider_name() == "anthropic"

    def test_openai_second(self) -> None:
        from src.main import _build_llm_provider

        provider = _build_llm_provider(_settings(openai_api_key="sk-test"))
        assert provider.get_provider_name() == "openai"

    def test_ollama_fallback(self) -> None:
        from src.main import _build_llm_provider

        assert _build_llm_provider(_settings()).get_provider_name() == "ollama"


# ======================================================================
# _build_embedding_provider
# ======================================================================


class TestBuildEmbeddingProvider:
    def test_openai_when_key_set(self) -> None:
        from src.main import _build_embedding_provider

        provider = _build_embedding_provider(_settings(openai_api_key="sk-test"))
        assert provider is not None
        assert provider.get_provider_name() == "openai_embedding"

    def test_nomic_when_ollama_reachable(self) -> None:
        from src.main import _build_embedding_provider

        with patch(
            "src.providers.embedding.nomic_embedding_provider.httpx.get",
            return_value=MagicMock(status_code=200),
        ):
            provider = _build_embedding_provider(_settings())

        assert provider is not None
        assert provider.get_provider_name() == "nomic_embedding"

    def test_none_when_nothing_available(self) -> None:
        from src.main import _build_embedding_provider

        assert _build_embedding_provider(_settings(ollama_base_url="")) is None


# ======================================================================
# _build_vector_store / _build_chunker
# ======================================================================


class TestBuildVectorStore:
    def test_memory(self) -> None:
        from src.main import _build_vector_store

        assert _build_vector_store(_settings()).get_provider_name() == "memory"

    def test_chromadb(self, tmp_path) -> None:
        from src.main import _build_vector_store

        store = _build_vector_store(
            _settings(vector_store_backend="chromadb", chromadb_persist_dir=str(tmp_path))
        )
        assert store.get_provider_name() == "chromadb"

    def test_unknown_backend(self) -> None:
        from src.main import _build_vector_store

        with pytest.raises(ConfigurationError):
            _build_vector_store(_settings(vector_store_backend="pinecone"))


class TestBuildChunker:
    def test_defaults(self) -> None:
        from src.main import _build_chunker

        chunker = _build_chunker(_settings())
        assert chunker.chunk_size == 1200
        assert chunker.overlap == 240
        assert chunker.step == 960

    def test_custom_budget(self) -> None:
        from src.main import _build_chunker

        chunker = _build_chunker(_settings(chunk_size_tokens=100, chars_per_token=3, chunk_overlap=0.5))
        assert chunker.chunk_size == 300
        assert chunker.overlap == 150


# ======================================================================
# _build_all / create_app
# ======================================================================


class TestBuildAll:
    def test_services_disabled_without_embedder(self) -> None:
        from src.main import _build_all

        components = _build_all(_settings(ollama_base_url=""))

        assert components["ingestion_service"] is None
        assert components["qa_service"] is None
        assert components["embedding_provider_name"] is None
        assert components["vector_store"].get_provider_name() == "memory"
        assert components["provider_registry"]["embedding"] is False

    def test_services_built_with_embedder(self) -> None:
        from src.main import _build_all

        components = _build_all(_settings(openai_api_key="sk-test"))

        assert components["ingestion_service"] is not None
        assert components["qa_service"] is not None
        assert components["primary_llm_name"] == "openai"
        assert components["embedding_provider_name"] == "openai_embedding"


class TestCreateApp:
    def test_returns_fastapi_with_routes(self) -> None:
        from src.main import create_app

        application = create_app(_settings())

        assert isinstance(application, FastAPI)
        paths = {route.path for route in application.routes}
        assert "/api/v1/projects/{project_id}/documents" in paths
        assert "/api/v1/projects/{project_id}/ask" in paths
        assert "/api/v1/health" in paths
