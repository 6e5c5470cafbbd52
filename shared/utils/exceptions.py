"""
shared/utils/exceptions.py
Domain error taxonomy. Services raise these; the handlers registered in
main.create_app translate them into the {success:false, ...} envelope.
"""

from typing import Any, Optional


class AppError(Exception):
    status_code: int = 500
    error: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AppError):
    status_code = 400
    error = "VALIDATION_ERROR"


class AuthenticationError(AppError):
    status_code = 401
    error = "AUTHENTICATION_ERROR"


class AuthorizationError(AppError):
    status_code = 403
    error = "AUTHORIZATION_ERROR"


class NotFoundError(AppError):
    status_code = 404
    error = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    error = "CONFLICT"


class RateLimitError(AppError):
    status_code = 429
    error = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str = "Too many requests, please try again later.", retry_after: int = 60):
        super().__init__(message)
        self.retry_after = retry_after


class OperationFailed(AppError):
    status_code = 500
    error = "OPERATION_FAILED"


class StorageError(AppError):
    """Upstream media storage failure."""
    status_code = 502
    error = "STORAGE_ERROR"
