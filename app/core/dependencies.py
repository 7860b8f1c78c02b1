"""FastAPI dependency providers: stores, services and the current principal."""

from typing import Annotated, Dict, Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.cookies import ACCESS_COOKIE, CookieTransport
from app.core.config import Settings, get_settings
from app.core.exceptions import Forbidden
from app.core.rate_limiter import RateLimiter
from app.core.security import PasswordHasher
from app.db.session import get_db
from app.repositories import RefreshTokenStore, UserStore
from app.services.auth_service import AuthService
from app.services.email_service import EmailService, ResetMailer
from app.services.password_reset_service import PasswordResetService
from app.services.principal import SessionPrincipal
from app.services.token_service import TokenIssuer

bearer_scheme = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_app_settings() -> Settings:
    return get_settings()


AppSettings = Annotated[Settings, Depends(get_app_settings)]

# Process-wide helpers that are expensive or stateful to build
_hashers: Dict[int, PasswordHasher] = {}
_email_service: Optional[EmailService] = None
_rate_limiter: Optional[RateLimiter] = None


def get_password_hasher(settings: AppSettings) -> PasswordHasher:
    hasher = _hashers.get(settings.bcrypt_rounds)
    if hasher is None:
        hasher = _hashers[settings.bcrypt_rounds] = PasswordHasher(settings.bcrypt_rounds)
    return hasher


def get_mailer(settings: AppSettings) -> ResetMailer:
    global _email_service
    if _email_service is None:
        _email_service = EmailService(settings)
    return _email_service


def get_rate_limiter(settings: AppSettings) -> RateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter.from_settings(settings)
    return _rate_limiter


def get_token_issuer(settings: AppSettings) -> TokenIssuer:
    return TokenIssuer.from_settings(settings)


def get_user_store(db: DbSession) -> UserStore:
    return UserStore(db)


def get_refresh_token_store(db: DbSession) -> RefreshTokenStore:
    return RefreshTokenStore(db)


def get_auth_service(
    settings: AppSettings,
    users: Annotated[UserStore, Depends(get_user_store)],
    refresh_tokens: Annotated[RefreshTokenStore, Depends(get_refresh_token_store)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
) -> AuthService:
    return AuthService(
        users=users,
        refresh_tokens=refresh_tokens,
        issuer=issuer,
        hasher=hasher,
        revoke_sessions_on_password_change=settings.revoke_sessions_on_password_change,
    )


def get_password_reset_service(
    settings: AppSettings,
    users: Annotated[UserStore, Depends(get_user_store)],
    refresh_tokens: Annotated[RefreshTokenStore, Depends(get_refresh_token_store)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    mailer: Annotated[ResetMailer, Depends(get_mailer)],
) -> PasswordResetService:
    return PasswordResetService(
        users=users,
        refresh_tokens=refresh_tokens,
        hasher=hasher,
        mailer=mailer,
        frontend_url=settings.frontend_url,
        token_ttl=settings.password_reset_ttl,
    )


def get_transport(request: Request, response: Response, settings: AppSettings) -> CookieTransport:
    return CookieTransport(request, response, secure=settings.is_production)


Auth = Annotated[AuthService, Depends(get_auth_service)]
PasswordReset = Annotated[PasswordResetService, Depends(get_password_reset_service)]
Transport = Annotated[CookieTransport, Depends(get_transport)]
Limiter = Annotated[RateLimiter, Depends(get_rate_limiter)]


async def get_current_principal(
    request: Request,
    auth: Auth,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> SessionPrincipal:
    """Resolve the access token (Bearer header first, then cookie) to a principal."""
    token = credentials.credentials if credentials else request.cookies.get(ACCESS_COOKIE)
    return await auth.principal_from_access_token(token)


CurrentPrincipal = Annotated[SessionPrincipal, Depends(get_current_principal)]


def require_roles(*roles: str):
    """Dependency factory rejecting principals that hold none of ``roles``."""
    wanted = frozenset(role.upper() for role in roles)

    async def checker(principal: CurrentPrincipal) -> SessionPrincipal:
        if not wanted & principal.roles:
            raise Forbidden(f"Forbidden. Requires role: {', '.join(sorted(wanted))}")
        return principal

    return checker


AdminPrincipal = Annotated[SessionPrincipal, Depends(require_roles("ADMIN"))]
