"""Services for business logic."""

from app.services.auth_service import AuthService, CredentialVerifier
from app.services.password_reset_service import PasswordResetService
from app.services.principal import SessionPrincipal
from app.services.token_service import ExpiryPolicy, Platform, TokenIssuer, TokenPair

__all__ = [
    "AuthService",
    "CredentialVerifier",
    "PasswordResetService",
    "SessionPrincipal",
    "ExpiryPolicy",
    "Platform",
    "TokenIssuer",
    "TokenPair",
]
