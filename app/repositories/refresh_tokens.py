"""Refresh token store: persistence for outstanding, single-use refresh tokens."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError
from app.core.security import token_digest
from app.models.refresh_token import RefreshToken

logger = logging.getLogger(__name__)


class RefreshTokenStore:
    """
    Rows are keyed by the SHA-256 digest of the token, so the raw token is
    never written to the database.

    Every mutating call commits before returning. A delete is therefore
    durable before the caller goes on to issue replacement tokens.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def store(
        self,
        user_id: str,
        token: str,
        expires_at: datetime,
        platform: str = "web",
    ) -> RefreshToken:
        digest = token_digest(token)
        if await self.db.get(RefreshToken, digest) is not None:
            raise ConflictError("Refresh token already exists")

        record = RefreshToken(
            token_hash=digest,
            user_id=user_id,
            platform=platform,
            expires_at=expires_at,
        )
        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError("Refresh token already exists") from exc
        return record

    async def find(self, token: str) -> Optional[RefreshToken]:
        result = await self.db.execute(
            select(RefreshToken).where(RefreshToken.token_hash == token_digest(token))
        )
        return result.scalar_one_or_none()

    async def remove(self, token: str) -> bool:
        """
        Delete a token. True only for the caller whose DELETE removed the row;
        a concurrent caller racing on the same token gets False.
        """
        result = await self.db.execute(
            delete(RefreshToken).where(RefreshToken.token_hash == token_digest(token))
        )
        await self.db.commit()
        return result.rowcount > 0

    async def remove_all_for_account(self, user_id: str) -> int:
        result = await self.db.execute(
            delete(RefreshToken).where(RefreshToken.user_id == user_id)
        )
        await self.db.commit()
        if result.rowcount:
            logger.info(f"Revoked {result.rowcount} refresh token(s) for user {user_id[:8]}...")
        return result.rowcount

    async def purge_expired(self, now: datetime) -> int:
        """Global cleanup of expired tokens. Call periodically."""
        result = await self.db.execute(
            delete(RefreshToken)
            .where(RefreshToken.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        count = result.rowcount
        if count > 0:
            logger.info(f"Cleaned up {count} expired refresh tokens")
        return count
