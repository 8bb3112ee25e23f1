"""Typed failures raised by the service layer.

Every error carries the HTTP status code it maps to; the exception
handlers registered in ``main`` turn them into
``{"success": false, "message": ...}`` responses.
"""

from fastapi import status


class AppError(Exception):
    """Base class for failures that are reported to the client."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def headers(self) -> dict[str, str] | None:
        return None


class ValidationError(AppError):
    """Malformed or missing input for a named field."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Invalid value for {field}")


class WeakPassword(ValidationError):
    def __init__(self, min_length: int = 6):
        super().__init__(
            "password", f"Password must be at least {min_length} characters"
        )


class DuplicateEmail(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "User already exists with this email"


class DuplicateUsername(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "User already exists with this username"


class Unauthenticated(AppError):
    """Missing, malformed, expired or revoked credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"

    @property
    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class InvalidCredentials(Unauthenticated):
    default_message = "Invalid email or password"


class TokenInvalid(Unauthenticated):
    default_message = "Invalid authentication token"


class TokenExpired(Unauthenticated):
    default_message = "Token expired"


class TokenRevoked(Unauthenticated):
    default_message = "Token revoked"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class TooManyAttempts(AppError):
    """Login throttled; ``retry_after`` is the remaining lockout in seconds."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        minutes = max(1, -(-retry_after // 60))
        super().__init__(
            f"Too many login attempts. Try again in {minutes} minute(s)"
        )

    @property
    def headers(self) -> dict[str, str] | None:
        return {"Retry-After": str(self.retry_after)}


class InternalError(AppError):
    """Unexpected storage or infrastructure failure."""
