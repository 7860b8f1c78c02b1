"""Pydantic schemas for API request/response validation."""

from app.schemas.user import (
    ForgotPassword,
    MessageResponse,
    PasswordChange,
    PrincipalResponse,
    ResetPassword,
    SessionResponse,
    UserCreate,
    UserLogin,
)

__all__ = [
    "ForgotPassword",
    "MessageResponse",
    "PasswordChange",
    "PrincipalResponse",
    "ResetPassword",
    "SessionResponse",
    "UserCreate",
    "UserLogin",
]
