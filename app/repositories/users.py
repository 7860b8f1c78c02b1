"""Account store: credential records, reset artifacts and role assignment."""

import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError
from app.core.security import token_digest, utcnow
from app.models.role import Role
from app.models.user import User

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserStore:
    """
    Data access for User rows, bound to one AsyncSession.

    Mutating methods commit immediately: each is its own unit of work.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Lookups ─────────────────────────────────
    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def find_by_reset_token(self, token: str) -> Optional[User]:
        if not token:
            return None
        result = await self.db.execute(
            select(User).where(User.reset_token_hash == token_digest(token))
        )
        return result.scalar_one_or_none()

    # ─── Creation / deletion ─────────────────────
    async def create(
        self,
        email: str,
        hashed_password: str,
        person_id: Optional[str] = None,
        role_names: Iterable[str] = (),
    ) -> User:
        email = normalize_email(email)
        if await self.find_by_email(email):
            raise ConflictError("An account with this email already exists")

        names = sorted({name.strip().upper() for name in role_names if name and name.strip()})
        roles = [await self._get_or_create_role(name) for name in names]
        user = User(
            email=email,
            hashed_password=hashed_password,
            person_id=person_id,
            is_active=True,
            roles=roles,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            if await self.find_by_email(email):
                raise ConflictError("An account with this email already exists") from exc
            logger.error(f"Account insert rejected by the database: {exc.orig}")
            raise ConflictError("Account could not be created") from exc
        return user

    async def delete(self, user: User) -> None:
        await self.db.delete(user)
        await self.db.commit()

    async def _get_or_create_role(self, name: str) -> Role:
        result = await self.db.execute(select(Role).where(Role.name == name))
        role = result.scalar_one_or_none()
        if role is None:
            role = Role(name=name)
            self.db.add(role)
            await self.db.flush()
        return role

    # ─── Password & reset artifacts ──────────────
    async def update_password_hash(self, user: User, hashed_password: str) -> None:
        user.hashed_password = hashed_password
        user.updated_at = utcnow()
        await self.db.commit()

    async def set_reset_token(self, user: User, token: str, expires_at: datetime) -> None:
        """Store the digest of a reset token, replacing any previous one."""
        user.reset_token_hash = token_digest(token)
        user.reset_expires_at = expires_at
        await self.db.commit()

    async def clear_reset_token(self, user: User) -> None:
        user.reset_token_hash = None
        user.reset_expires_at = None
        await self.db.commit()

    async def consume_reset_token(self, user_id: str, token: str, hashed_password: str) -> bool:
        """
        Swap the password hash and clear the reset artifact in one statement.

        Only succeeds while the token is still on the row, so two concurrent
        resets with the same token cannot both win. Returns False for the loser.
        """
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id, User.reset_token_hash == token_digest(token))
            .values(
                hashed_password=hashed_password,
                reset_token_hash=None,
                reset_expires_at=None,
                updated_at=utcnow(),
            )
        )
        await self.db.commit()
        return result.rowcount > 0

    async def record_login(self, user: User) -> None:
        user.last_login = utcnow()
        await self.db.commit()
