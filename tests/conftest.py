"""
Shared fixtures for the auth test-suite.

Run with: pytest -v
"""

import os

# Must be set before app modules read their settings
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-signing-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("REFRESH_TOKEN_SWEEP_INTERVAL_SECONDS", "0")

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.security import PasswordHasher
from app.db import Base
from app.repositories import RefreshTokenStore, UserStore
from app.services.auth_service import AuthService
from app.services.password_reset_service import PasswordResetService
from app.services.token_service import ExpiryPolicy, TokenIssuer

import app.models  # noqa: F401  (registers tables)

TEST_SECRET = "test-signing-secret"
STRONG_PASSWORD = "Correct#1"


# ============================================
# Test Doubles
# ============================================

class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeTransport:
    """In-memory stand-in for the cookie transport."""

    def __init__(self, refresh_token: Optional[str] = None):
        self.refresh_token = refresh_token
        self.access_token: Optional[str] = None
        self.access_expires_at: Optional[datetime] = None
        self.refresh_expires_at: Optional[datetime] = None
        self.persistent: Optional[bool] = None
        self.cleared = 0

    def read_refresh_token(self) -> Optional[str]:
        return self.refresh_token

    def set_tokens(self, access_token, refresh_token, access_expires_at, refresh_expires_at, persistent):
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.access_expires_at = access_expires_at
        self.refresh_expires_at = refresh_expires_at
        self.persistent = persistent

    def clear_tokens(self) -> None:
        self.access_token = None
        self.refresh_token = None
        self.cleared += 1


class FakeMailer:
    """Captures reset links instead of sending them."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    async def send_reset_link(self, to_email: str, reset_link: str) -> bool:
        self.sent.append((to_email, reset_link))
        return True

    @property
    def last_token(self) -> str:
        _, link = self.sent[-1]
        return link.split("token=", 1)[1]


# ============================================
# Database
# ============================================

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ============================================
# Services
# ============================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def policy():
    return ExpiryPolicy(
        access_web=timedelta(hours=1),
        access_mobile=timedelta(hours=24),
        refresh_web=timedelta(days=7),
        refresh_mobile=timedelta(days=30),
    )


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def issuer(policy, clock):
    return TokenIssuer(secret=TEST_SECRET, policy=policy, clock=clock)


@pytest.fixture
def users(db):
    return UserStore(db)


@pytest.fixture
def refresh_tokens(db):
    return RefreshTokenStore(db)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def auth(users, refresh_tokens, issuer, hasher, clock):
    return AuthService(
        users=users,
        refresh_tokens=refresh_tokens,
        issuer=issuer,
        hasher=hasher,
        clock=clock,
    )


@pytest.fixture
def reset_service(users, refresh_tokens, hasher, mailer, clock):
    return PasswordResetService(
        users=users,
        refresh_tokens=refresh_tokens,
        hasher=hasher,
        mailer=mailer,
        frontend_url="https://roster.example.org",
        clock=clock,
    )


@pytest_asyncio.fixture
async def account(users, hasher):
    """A@x.com with password Correct#1 and the DOCTOR + USER roles."""
    return await users.create(
        email="a@x.com",
        hashed_password=hasher.hash(STRONG_PASSWORD),
        role_names=["USER", "DOCTOR"],
    )
