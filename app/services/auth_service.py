"""Authentication service: credential verification and the session token lifecycle."""

import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from app.core.exceptions import (
    InvalidCredentials,
    InvalidToken,
    TokenExpired,
    UnknownToken,
)
from app.core.password_policy import ensure_password_strength
from app.core.security import PasswordHasher, ensure_utc, utcnow
from app.core.transport import SessionTransport
from app.models.user import User
from app.repositories import RefreshTokenStore, UserStore
from app.services.principal import SessionPrincipal
from app.services.token_service import Platform, TokenIssuer, TokenPair

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "USER"


class CredentialVerifier:
    """Checks an email/password pair. Read-only."""

    def __init__(self, users: UserStore, hasher: PasswordHasher):
        self.users = users
        self.hasher = hasher

    async def authenticate(self, email: str, password: str) -> User:
        user = await self.users.find_by_email(email)
        # Unknown accounts still pay for a bcrypt check so timing stays flat
        hashed_password = user.hashed_password if user else self.hasher.dummy_hash
        password_correct = await self.hasher.verify_async(password or "", hashed_password)

        if user is None:
            logger.info("Login rejected: unknown account")
            raise InvalidCredentials()
        if not password_correct:
            logger.info(f"Login rejected: password mismatch for user {user.id[:8]}...")
            raise InvalidCredentials()
        if not user.is_active:
            logger.info(f"Login rejected: inactive user {user.id[:8]}...")
            raise InvalidCredentials()
        return user

    async def verify(self, email: str, password: str) -> SessionPrincipal:
        user = await self.authenticate(email, password)
        return SessionPrincipal.from_user(user)


class AuthService:
    """
    Session protocol: login, refresh rotation, logout, password change.

    Refresh tokens move ISSUED -> CONSUMED | EXPIRED | REVOKED and never come
    back: the stored row is deleted on every exit from ISSUED.
    """

    def __init__(
        self,
        users: UserStore,
        refresh_tokens: RefreshTokenStore,
        issuer: TokenIssuer,
        hasher: PasswordHasher,
        revoke_sessions_on_password_change: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.issuer = issuer
        self.hasher = hasher
        self.verifier = CredentialVerifier(users, hasher)
        self.revoke_sessions_on_password_change = revoke_sessions_on_password_change
        self.clock = clock

    # ─── Registration ───────────────────────────
    async def register(
        self,
        email: str,
        password: str,
        person_id: Optional[str] = None,
        roles: Optional[Iterable[str]] = None,
    ) -> SessionPrincipal:
        ensure_password_strength(password)
        hashed = await self.hasher.hash_async(password)
        user = await self.users.create(
            email=email,
            hashed_password=hashed,
            person_id=person_id,
            role_names=roles or (DEFAULT_ROLE,),
        )
        logger.info(f"Registered user {user.id[:8]}...")
        return SessionPrincipal.from_user(user)

    # ─── Issuing ─────────────────────────────────
    async def _start_session(
        self,
        principal: SessionPrincipal,
        platform: Platform,
        transport: SessionTransport,
    ) -> TokenPair:
        pair = self.issuer.issue(principal, platform)
        await self.refresh_tokens.store(
            principal.id,
            pair.refresh_token,
            pair.refresh_expires_at,
            platform=pair.platform.value,
        )
        transport.set_tokens(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            access_expires_at=pair.access_expires_at,
            refresh_expires_at=pair.refresh_expires_at,
            persistent=pair.platform.is_persistent,
        )
        return pair

    # ─── Login ───────────────────────────────────
    async def login(
        self,
        email: str,
        password: str,
        transport: SessionTransport,
        platform: Platform = Platform.WEB,
    ) -> SessionPrincipal:
        user = await self.verifier.authenticate(email, password)
        principal = SessionPrincipal.from_user(user)
        await self._start_session(principal, Platform.parse(platform), transport)
        await self.users.record_login(user)
        logger.info(f"User {user.id[:8]}... logged in ({Platform.parse(platform).value})")
        return principal

    # ─── Refresh (rotation) ──────────────────────
    async def refresh(self, transport: SessionTransport) -> SessionPrincipal:
        token = transport.read_refresh_token()
        if not token:
            raise InvalidToken("No refresh token present")

        # Signature and type only; liveness is decided by the stored record
        claims = self.issuer.verify_refresh(token)

        record = await self.refresh_tokens.find(token)
        if record is None:
            raise UnknownToken("Refresh token not found or already invalidated")
        user_id, platform = record.user_id, Platform.parse(record.platform)
        if user_id != claims["sub"]:
            await self.refresh_tokens.remove(token)
            raise InvalidToken("Refresh token does not match its record")

        if ensure_utc(record.expires_at) <= self.clock():
            await self.refresh_tokens.remove(token)
            raise TokenExpired("Refresh token has expired")

        # Consume before issuing. A crash after this point costs the user a
        # login, never leaves two live lineages for one token.
        if not await self.refresh_tokens.remove(token):
            logger.warning(f"Refresh token for user {user_id[:8]}... consumed concurrently")
            raise UnknownToken("Refresh token not found or already invalidated")

        user = await self.users.find_by_id(user_id)
        if user is None or not user.is_active:
            raise InvalidToken("Account no longer exists or is disabled")

        principal = SessionPrincipal.from_user(user)
        await self._start_session(principal, platform, transport)
        return principal

    # ─── Logout ──────────────────────────────────
    async def logout(self, transport: SessionTransport) -> bool:
        """
        End the current session. Always succeeds; returns whether a stored
        token was actually removed.
        """
        token = transport.read_refresh_token()
        transport.clear_tokens()
        if not token:
            return False
        return await self.refresh_tokens.remove(token)

    async def logout_all(self, user_id: str, transport: Optional[SessionTransport] = None) -> int:
        if transport is not None:
            transport.clear_tokens()
        return await self.refresh_tokens.remove_all_for_account(user_id)

    # ─── Access tokens ───────────────────────────
    async def principal_from_access_token(self, token: Optional[str]) -> SessionPrincipal:
        claims = self.issuer.verify_access(token)
        user = await self.users.find_by_id(claims["sub"])
        if user is None or not user.is_active:
            raise InvalidToken("Token not valid (account does not exist)")
        return SessionPrincipal.from_user(user)

    # ─── Change Password ─────────────────────────
    async def change_password(self, user_id: str, old_password: str, new_password: str) -> int:
        """
        Replace the password after re-checking the old one. Returns the
        number of other sessions revoked.
        """
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise InvalidToken("Token not valid (account does not exist)")

        if not await self.hasher.verify_async(old_password or "", user.hashed_password):
            raise InvalidCredentials("Current password is incorrect")

        ensure_password_strength(new_password)

        await self.users.update_password_hash(user, await self.hasher.hash_async(new_password))
        logger.info(f"Password changed for user {user.id[:8]}...")

        if self.revoke_sessions_on_password_change:
            return await self.refresh_tokens.remove_all_for_account(user.id)
        return 0
