"""Core module with logging, errors, middleware, and exception handling."""

from aiunk.core.errors import (
    AppError,
    ChatTurnFailedError,
    ConversationAccessError,
    ErrorCode,
    ErrorResponse,
    ForbiddenError,
    ModelNotFoundError,
    ProviderAuthError,
    ProviderBadResponseError,
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
    SessionExpiredError,
    UnauthorizedError,
    ValidationError,
)
from aiunk.core.logging import get_logger, request_id_ctx, setup_logging, user_id_ctx

__all__ = [
    # Errors
    "AppError",
    "ChatTurnFailedError",
    "ConversationAccessError",
    "ErrorCode",
    "ErrorResponse",
    "ForbiddenError",
    "ModelNotFoundError",
    "ProviderAuthError",
    "ProviderBadResponseError",
    "ProviderError",
    "ProviderUnavailableError",
    "RateLimitError",
    "SessionExpiredError",
    "UnauthorizedError",
    "ValidationError",
    # Logging
    "get_logger",
    "request_id_ctx",
    "setup_logging",
    "user_id_ctx",
]
