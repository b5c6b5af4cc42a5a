"""Knowledge base API layer: routes, schemas, and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router
from src.api.schemas import (
    AnswerResponse,
    AskRequest,
    ErrorResponse,
    HealthResponse,
    IngestResponse,
    ProjectStatsResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "AnswerResponse",
    "AskRequest",
    "ErrorResponse",
    "HealthResponse",
    "IngestResponse",
    "ProjectStatsResponse",
]
