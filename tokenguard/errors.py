"""Domain exceptions for TokenGuard.

Each exception carries an HTTP status and a machine-readable error code. The
exception handler in ``main`` renders them as ``{"detail": ..., "error_code": ...}``.
"""


class AppError(Exception):
    """Base exception for all application errors."""

    message: str = "An unexpected error occurred"
    error_code: str = "internal_error"
    status_code: int = 500

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.message
        super().__init__(self.message)


class UserNotFoundError(AppError):
    message = "User not found"
    error_code = "user_not_found"
    status_code = 404


class TokenNotFoundError(AppError):
    message = "Token not found"
    error_code = "token_not_found"
    status_code = 401


class TokenExpiredError(AppError):
    message = "Token has expired"
    error_code = "token_expired"
    status_code = 401


class InvalidBearerTokenError(AppError):
    """Raised by the authentication gate for a malformed bearer credential."""

    message = "Invalid bearer token"
    error_code = "invalid_token"
    status_code = 401


class NotAuthenticatedError(AppError):
    message = "Not authenticated"
    error_code = "not_authenticated"
    status_code = 401


class InvalidCredentialsError(AppError):
    message = "Invalid username or password"
    error_code = "invalid_credentials"
    status_code = 401


class AccountLockedError(AppError):
    message = "Account is temporarily locked due to too many failed login attempts"
    error_code = "account_locked"
    status_code = 403


class AccessDeniedError(AppError):
    message = "Access denied"
    error_code = "access_denied"
    status_code = 403


class AlreadyActiveError(AppError):
    message = "User account is already active"
    error_code = "already_active"
    status_code = 400


class ConflictError(AppError):
    """Raised when a write collides with an existing unique value."""

    message = "Resource already exists"
    error_code = "conflict"
    status_code = 409


class ConcurrentUpdateError(ConflictError):
    """Raised when a row changed underneath the current transaction. Safe to retry."""

    message = "The record was modified concurrently, please retry"
    error_code = "concurrent_update"


class PasswordTooLongError(AppError):
    message = "Password must not exceed 72 bytes when UTF-8 encoded"
    error_code = "password_too_long"
    status_code = 400
