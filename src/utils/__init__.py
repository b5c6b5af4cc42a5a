"""Utility modules for the ZED knowledge pipeline.

- **errors** -- Exception hierarchy rooted at KnowledgeBaseError; each
  failure class (input, parse, backend, configuration) has its own subclass
  so callers and the HTTP layer can tell them apart.
- **concurrency** -- Semaphore-bounded ``gather`` used to fan out embedding
  batches while preserving result order.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from src.utils.concurrency import first_exception, throttled_gather
from src.utils.errors import (
    BackendError,
    ConfigurationError,
    DocumentParseError,
    EmbeddingError,
    GenerationError,
    InputValidationError,
    KnowledgeBaseError,
    VectorStoreError,
)
from src.utils.logging import configure_logging, get_logger

__all__ = [
    "BackendError",
    "ConfigurationError",
    "DocumentParseError",
    "EmbeddingError",
    "GenerationError",
    "InputValidationError",
    "KnowledgeBaseError",
    "VectorStoreError",
    "configure_logging",
    "first_exception",
    "get_logger",
    "throttled_gather",
]
