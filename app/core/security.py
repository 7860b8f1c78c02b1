"""Password hashing, token digests and UTC time helpers."""

import asyncio
import hashlib
from datetime import datetime, timezone

from passlib.context import CryptContext


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def token_digest(token: str) -> str:
    """SHA-256 hex digest used as the lookup key for stored tokens."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class PasswordHasher:
    """
    bcrypt hashing with a salted, constant-time comparison.

    The async variants run bcrypt in a worker thread so a slow hash never
    stalls unrelated requests on the event loop.
    """

    def __init__(self, rounds: int = 12):
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )
        # Verified for unknown accounts so timing does not leak existence
        self.dummy_hash = self.hash("this_is_a_fake_user_that_never_exists")

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, plain: str, hashed: str) -> bool:
        try:
            return self._context.verify(plain, hashed)
        except (ValueError, TypeError):
            # Unparseable stored hash
            return False

    async def hash_async(self, password: str) -> str:
        return await asyncio.to_thread(self.hash, password)

    async def verify_async(self, plain: str, hashed: str) -> bool:
        return await asyncio.to_thread(self.verify, plain, hashed)
