"""
Password reset service.

Security features:
- 256-bit random tokens from the secrets module
- Only the SHA-256 digest of a token is stored
- Time-limited expiration (default 1 hour)
- One active token per account; a new request overwrites the old one
- Single-use: the token is cleared in the same statement that swaps the hash
- No account enumeration: unknown emails get the same answer as known ones
- All sessions are revoked after a successful reset
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional
from urllib.parse import urlencode

from app.core.exceptions import TokenExpired, UnknownToken
from app.core.password_policy import ensure_password_strength
from app.core.security import PasswordHasher, ensure_utc, utcnow
from app.repositories import RefreshTokenStore, UserStore
from app.services.email_service import ResetMailer

logger = logging.getLogger(__name__)

RESET_TOKEN_BYTES = 32  # 256 bits
RESET_TOKEN_TTL = timedelta(hours=1)


class PasswordResetService:
    """Issue and consume single-use password reset tokens."""

    def __init__(
        self,
        users: UserStore,
        refresh_tokens: RefreshTokenStore,
        hasher: PasswordHasher,
        mailer: ResetMailer,
        frontend_url: str,
        token_ttl: timedelta = RESET_TOKEN_TTL,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.hasher = hasher
        self.mailer = mailer
        self.frontend_url = frontend_url.rstrip("/")
        self.token_ttl = token_ttl
        self.clock = clock

    @staticmethod
    def generate_token() -> str:
        return secrets.token_hex(RESET_TOKEN_BYTES)

    def build_reset_link(self, token: str) -> str:
        return f"{self.frontend_url}/reset-password?{urlencode({'token': token})}"

    # ─────────────────────────────────────────────────────────────
    # Request Password Reset
    # ─────────────────────────────────────────────────────────────

    async def request_reset(self, email: str) -> Optional[str]:
        """
        Start a reset for the account behind ``email``.

        Returns the plain token when one was issued (for the caller's tests and
        tooling only; it must never be logged or sent back over the API).
        Unknown or inactive accounts return None and nothing else happens.
        """
        user = await self.users.find_by_email(email)
        if user is None or not user.is_active:
            logger.info("Password reset requested for unknown or inactive account")
            return None

        token = self.generate_token()
        expires_at = self.clock() + self.token_ttl
        await self.users.set_reset_token(user, token, expires_at)

        await self.mailer.send_reset_link(user.email, self.build_reset_link(token))
        logger.info(f"Password reset token issued for user {user.id[:8]}...")
        return token

    # ─────────────────────────────────────────────────────────────
    # Consume Reset Token
    # ─────────────────────────────────────────────────────────────

    async def consume_reset(self, token: str, new_password: str) -> None:
        user = await self.users.find_by_reset_token(token)
        if user is None:
            raise UnknownToken("Invalid or unknown reset token")

        if user.reset_expires_at is None or ensure_utc(user.reset_expires_at) < self.clock():
            await self.users.clear_reset_token(user)
            raise TokenExpired("This reset token has expired. Please request a new one.")

        ensure_password_strength(new_password)

        hashed = await self.hasher.hash_async(new_password)
        if not await self.users.consume_reset_token(user.id, token, hashed):
            # Another request used the token between lookup and update
            raise UnknownToken("Invalid or unknown reset token")

        revoked = await self.refresh_tokens.remove_all_for_account(user.id)
        logger.info(
            f"Password reset completed for user {user.id[:8]}..., {revoked} session(s) invalidated"
        )
