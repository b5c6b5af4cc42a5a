"""Custom exception hierarchy for the ZED knowledge pipeline.

All application exceptions inherit from :class:`KnowledgeBaseError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "chromadb", "pymupdf") caused the failure.

The hierarchy mirrors the failure taxonomy callers must be able to tell apart:

    KnowledgeBaseError  (base -- catch-all for any pipeline error)
    +-- InputValidationError     (client-fixable: bad project, doc type, file, query)
    +-- DocumentParseError       (file is not a readable PDF / has zero pages)
    +-- ConfigurationError       (startup / missing config)
    +-- BackendError             (transient infrastructure failure)
        +-- EmbeddingError       (embedding backend call failed)
        +-- VectorStoreError     (store unreachable, insert or search failed)
        +-- GenerationError      (generation backend call or stream failed)

"No extractable text" and "no relevant context" are deliberately absent:
both are valid results, not errors.
"""


class KnowledgeBaseError(Exception):
    """Base exception for all knowledge pipeline errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Client-fixable errors
# ---------------------------------------------------------------------------

class InputValidationError(KnowledgeBaseError):
    """Raised before any external call when request input is missing or invalid."""

    def __init__(
        self,
        message: str = "Invalid request input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentParseError(KnowledgeBaseError):
    """Raised when an uploaded file cannot be read as a PDF or has no pages.

    Distinct from an empty-but-valid PDF, which ingests as a
    ``no_content`` result rather than an error.
    """

    def __init__(
        self,
        message: str = "Document could not be parsed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(KnowledgeBaseError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Backend (infrastructure) errors
# ---------------------------------------------------------------------------

class BackendError(KnowledgeBaseError):
    """Raised when an external backend is unreachable or returns an error.

    The core never retries; callers decide whether to try again.
    """

    def __init__(
        self,
        message: str = "Backend call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(BackendError):
    """Raised when an embedding batch fails or returns a malformed result."""

    def __init__(
        self,
        message: str = "Embedding call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class VectorStoreError(BackendError):
    """Raised when a vector-store insert, search, or read fails."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class GenerationError(BackendError):
    """Raised when the generation backend fails to open or continue a stream."""

    def __init__(
        self,
        message: str = "Generation call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
