"""Token issuer: signed access/refresh JWT pairs with a per-platform expiry policy."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from jose import JWTError, jwt

from app.core.config import Settings
from app.core.exceptions import ConfigurationError, InvalidToken
from app.core.security import utcnow
from app.services.principal import SessionPrincipal

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


class Platform(str, Enum):
    """Client platform; decides how long a session may live."""

    WEB = "web"
    MOBILE = "mobile"
    WEB_PERSIST = "web-persist"

    @property
    def is_persistent(self) -> bool:
        return self is not Platform.WEB

    @classmethod
    def parse(cls, value: Optional[str]) -> "Platform":
        """Unknown or missing tags fall back to the strictest policy (web)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.WEB


@dataclass(frozen=True)
class ExpiryPolicy:
    """Lifetime of each artifact per platform. web-persist = web access + mobile refresh."""

    access_web: timedelta
    access_mobile: timedelta
    refresh_web: timedelta
    refresh_mobile: timedelta

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExpiryPolicy":
        return cls(
            access_web=settings.access_ttl_web,
            access_mobile=settings.access_ttl_mobile,
            refresh_web=settings.refresh_ttl_web,
            refresh_mobile=settings.refresh_ttl_mobile,
        )

    def access_ttl(self, platform: Platform) -> timedelta:
        if platform is Platform.MOBILE:
            return self.access_mobile
        return self.access_web

    def refresh_ttl(self, platform: Platform) -> timedelta:
        if platform is Platform.WEB:
            return self.refresh_web
        return self.refresh_mobile


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    platform: Platform


class TokenIssuer:
    """
    Mints and verifies HS256 tokens.

    Access tokens carry only the account id (roles are looked up fresh on
    each protected call). Refresh tokens also carry the platform so a
    rotated session keeps its policy.
    """

    def __init__(
        self,
        secret: Optional[str],
        policy: ExpiryPolicy,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = utcnow,
    ):
        self._secret = secret
        self.policy = policy
        self.algorithm = algorithm
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], datetime] = utcnow) -> "TokenIssuer":
        return cls(
            secret=settings.signing_secret,
            policy=ExpiryPolicy.from_settings(settings),
            algorithm=settings.jwt_algorithm,
            clock=clock,
        )

    # ─── Signing ─────────────────────────────────
    def _require_secret(self) -> str:
        if not self._secret:
            logger.critical("JWT signing secret is not configured; refusing to issue tokens")
            raise ConfigurationError("Token signing secret is not configured")
        return self._secret

    def _encode(self, claims: dict, issued_at: datetime, expires_at: datetime) -> str:
        secret = self._require_secret()
        payload = {
            **claims,
            "jti": str(uuid.uuid4()),
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        try:
            return jwt.encode(payload, secret, algorithm=self.algorithm)
        except JWTError as exc:
            raise ConfigurationError(f"Token signing failed: {exc}") from exc

    def issue(self, principal: SessionPrincipal, platform: Platform = Platform.WEB) -> TokenPair:
        platform = Platform.parse(platform)
        # Whole seconds: JWT exp has no sub-second precision and the stored
        # record must expire at exactly the same instant.
        now = self.clock().replace(microsecond=0)
        access_expires_at = now + self.policy.access_ttl(platform)
        refresh_expires_at = now + self.policy.refresh_ttl(platform)

        access_token = self._encode(
            {"sub": principal.id, "type": ACCESS},
            issued_at=now,
            expires_at=access_expires_at,
        )
        refresh_token = self._encode(
            {"sub": principal.id, "type": REFRESH, "platform": platform.value},
            issued_at=now,
            expires_at=refresh_expires_at,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            access_expires_at=access_expires_at,
            refresh_expires_at=refresh_expires_at,
            platform=platform,
        )

    # ─── Verification ────────────────────────────
    def _decode(self, token: str, expected_type: str, check_expiry: bool = True) -> dict:
        if not token:
            raise InvalidToken(f"Missing {expected_type} token")
        secret = self._require_secret()
        # Expiry is checked below against the injected clock
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise InvalidToken(f"Invalid {expected_type} token") from exc

        if payload.get("type") != expected_type or not payload.get("sub"):
            raise InvalidToken(f"Invalid {expected_type} token")

        exp = payload.get("exp")
        if not isinstance(exp, (int, float)):
            raise InvalidToken(f"Invalid {expected_type} token")
        if check_expiry and exp <= self.clock().timestamp():
            raise InvalidToken(f"Invalid or expired {expected_type} token")
        return payload

    def verify_access(self, token: str) -> dict:
        return self._decode(token, ACCESS)

    def verify_refresh(self, token: str) -> dict:
        """
        Check signature and type only. Whether a refresh token is still live
        (unconsumed, unexpired) is decided by its stored record.
        """
        return self._decode(token, REFRESH, check_expiry=False)
