"""
Global exception handling for the application.
Standardizes error responses as {"error": {"code", "message", "details", "path"}}.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class AppError(Exception):
    """Base class for all application exceptions."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "AppError"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class EntityNotFoundException(AppError):
    """Resource not found error."""
    status_code = status.HTTP_404_NOT_FOUND
    code = "NotFound"

    def __init__(self, message: str = "Entity not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


class ConflictException(AppError):
    """The resource is not in a state that allows the operation."""
    status_code = status.HTTP_409_CONFLICT
    code = "Conflict"


# --- Spreadsheet ---

class UnreadableFileException(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "UnreadableFile"


class ColumnNotFoundException(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "ColumnNotFound"


class UnsupportedFormatException(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "UnsupportedFormat"


# --- Pipeline ---

class InvalidColumnException(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "InvalidColumn"


class AlreadyProcessingException(ConflictException):
    code = "AlreadyProcessing"


class InvalidFileStateException(ConflictException):
    code = "InvalidFileState"


class AlreadyProcessedException(ConflictException):
    code = "AlreadyProcessed"


class InvalidSuggestionIndexException(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "InvalidSuggestionIndex"


# --- External providers ---

class ProviderUnavailableException(AppError):
    """Search provider has no credential and fallback is disabled."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "ProviderUnavailable"


class ProviderErrorException(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "ProviderError"


class ScorerUnavailableException(AppError):
    """Completion provider has no credential and fallback is disabled."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "ScorerUnavailable"


class ScorerErrorException(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "ScorerError"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render application errors with their own status code."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "details": exc.details,
                "path": request.url.path,
            }
        },
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all uncaught exceptions globally."""
    if isinstance(exc, AppError):
        return await app_error_handler(request, exc)

    logger.exception("Unexpected error occurred", path=request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "InternalServerError",
                "message": "An unexpected error occurred. Please try again later.",
                "path": request.url.path,
            }
        },
    )
