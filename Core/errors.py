"""Application errors rendered as {"error": kind, "message": ..., **extra}."""

from typing import Any, Optional

from fastapi import status


class ConfigError(Exception):
    """Missing or malformed configuration; raised at startup."""


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind: str = "server_error"
    message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message, **self.extra}


class AuthenticationMissing(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    kind = "authentication_missing"
    message = "Authentication required"


class AuthenticationExpired(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    kind = "authentication_expired"
    message = "Token expired"


class AuthenticationInvalid(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    kind = "authentication_invalid"
    message = "Invalid token"


class AuthorizationDenied(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    kind = "authorization_denied"
    message = "Insufficient privilege"


class AccountLocked(AppError):
    status_code = status.HTTP_423_LOCKED
    kind = "account_locked"
    message = "Account temporarily locked due to too many failed login attempts"


class RateLimited(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    kind = "rate_limited"
    message = "Too many attempts. Please try again later."


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    kind = "validation_failed"
    message = "Validation failed"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls(details=[{"field": field, "message": message}])


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    kind = "not_found"
    message = "Not found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    kind = "conflict"
    message = "Resource already exists or constraint violated"
