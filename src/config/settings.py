"""Application settings loaded via pydantic-settings.

Sources, highest priority first:

  1. Constructor keyword arguments (tests, CLI overrides)
  2. Environment variables -- e.g. ``OPENAI_API_KEY=sk-abc123``
  3. ``.env`` file in the working directory (local development)
  4. ``config/config.yaml`` -- static defaults checked into the repo
  5. Field defaults below

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``; the YAML file
uses the field names as keys.  The ``.env`` file is never committed.
"""

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)


class Settings(BaseSettings):
    """Knowledge pipeline settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="config/config.yaml",
        extra="ignore",
    )

    # === Generation / embedding backends ===
    # Empty string = "not configured"; main.py skips such providers.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (TogetherAI, etc.)
    openai_text_model: str = ""
    openai_embedding_model: str = ""
    anthropic_api_key: str = ""
    anthropic_model: str = ""
    ollama_base_url: str = "http://localhost:11434"
    ollama_text_model: str = ""
    backend_timeout: float = Field(default=60.0, gt=0)

    # === Vector store ===
    vector_store_backend: str = "chromadb"  # "chromadb" or "memory"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "vector_index"

    # === Chunking ===
    # S = chunk_size_tokens * chars_per_token characters; overlap floor(S * f).
    chunk_size_tokens: int = Field(default=300, gt=0)
    chars_per_token: int = Field(default=4, gt=0)
    chunk_overlap: float = Field(default=0.2, ge=0.0, lt=1.0)

    # === Embedding ===
    embed_batch_size: int = Field(default=100, gt=0)
    embed_concurrency: int = Field(default=4, gt=0)

    # === Answering ===
    retrieval_top_k: int = Field(default=8, gt=0)
    generation_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    generation_max_tokens: int = Field(default=2048, gt=0)
    context_listing_limit: int = Field(default=50, gt=0)

    # === Upload ===
    max_upload_bytes: int = Field(default=20 * 1024 * 1024, gt=0)

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @property
    def chunk_size_chars(self) -> int:
        return self.chunk_size_tokens * self.chars_per_token
