"""
Authentication error taxonomy.

Every error carries the HTTP status it maps to and a stable machine-readable
code. They are turned into JSON responses by the handler registered in
main.py, so none of them ever reaches a client as a stack trace.
"""

from typing import Dict, List, Optional


class AuthError(Exception):
    """Base class for errors raised by the auth core."""

    status_code: int = 400
    code: str = "AUTH_ERROR"
    default_message: str = "Authentication error"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.message}


class InvalidCredentials(AuthError):
    """Unknown email or wrong password. The two are never distinguished."""

    status_code = 401
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid email or password"


class InvalidToken(AuthError):
    """Missing, malformed, badly signed or wrong-type token."""

    status_code = 401
    code = "INVALID_TOKEN"
    default_message = "Invalid or missing token"


class UnknownToken(AuthError):
    """Well-formed token with no live record (never issued or already consumed)."""

    status_code = 404
    code = "UNKNOWN_TOKEN"
    default_message = "Token not found or already invalidated"


class NotFound(AuthError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class TokenExpired(AuthError):
    status_code = 401
    code = "TOKEN_EXPIRED"
    default_message = "Token has expired"


class WeakPassword(AuthError):
    status_code = 400
    code = "WEAK_PASSWORD"
    default_message = "Password does not meet the required strength policy"

    def __init__(self, reasons: Optional[List[str]] = None):
        self.reasons = reasons or []
        message = self.default_message
        if self.reasons:
            message = f"{message}: {'; '.join(self.reasons)}"
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["reasons"] = self.reasons
        return data


class ConflictError(AuthError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class Forbidden(AuthError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "You do not have access to this resource"


class RateLimited(AuthError):
    status_code = 429
    code = "RATE_LIMITED"
    default_message = "Too many requests"

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            f"Too many requests. Please try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )


class ConfigurationError(AuthError):
    """Server misconfiguration, e.g. a missing signing secret. Always fatal."""

    status_code = 500
    code = "CONFIGURATION_ERROR"
    default_message = "Server is not configured correctly"
