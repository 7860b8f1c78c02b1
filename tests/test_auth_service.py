"""
Tests for credential verification and the session protocol
(login, refresh rotation, logout, password change).

Run with: pytest tests/test_auth_service.py -v
"""

from datetime import timedelta

import pytest

from app.core.exceptions import (
    ConflictError,
    InvalidCredentials,
    InvalidToken,
    TokenExpired,
    UnknownToken,
    WeakPassword,
)
from app.core.security import ensure_utc
from app.services.auth_service import AuthService, CredentialVerifier
from app.services.token_service import Platform

from tests.conftest import STRONG_PASSWORD, FakeTransport


async def login(auth, platform=Platform.WEB, password=STRONG_PASSWORD):
    transport = FakeTransport()
    await auth.login("a@x.com", password, transport=transport, platform=platform)
    return transport


# ============================================
# Credential Verifier
# ============================================

class TestCredentialVerifier:
    """Tests for email/password checks."""

    @pytest.mark.asyncio
    async def test_valid_credentials(self, users, hasher, account):
        principal = await CredentialVerifier(users, hasher).verify("A@x.com", STRONG_PASSWORD)

        assert principal.id == account.id
        assert principal.email == "a@x.com"
        assert principal.roles == frozenset({"USER", "DOCTOR"})
        assert principal.has_role("doctor")

    @pytest.mark.asyncio
    async def test_unknown_email_and_wrong_password_look_alike(self, users, hasher, account):
        verifier = CredentialVerifier(users, hasher)

        with pytest.raises(InvalidCredentials) as unknown:
            await verifier.verify("nobody@x.com", STRONG_PASSWORD)
        with pytest.raises(InvalidCredentials) as wrong:
            await verifier.verify("a@x.com", "Wrong#123")

        assert unknown.value.to_dict() == wrong.value.to_dict()

    @pytest.mark.asyncio
    async def test_unknown_email_does_not_hash_per_request(self, users, hasher, monkeypatch):
        def no_hashing(password):
            raise AssertionError("bcrypt hash computed during login")

        monkeypatch.setattr(hasher, "hash", no_hashing)

        with pytest.raises(InvalidCredentials):
            await CredentialVerifier(users, hasher).verify("nobody@x.com", STRONG_PASSWORD)

    @pytest.mark.asyncio
    async def test_inactive_account_rejected(self, users, hasher, account):
        account.is_active = False
        await users.db.commit()

        with pytest.raises(InvalidCredentials):
            await CredentialVerifier(users, hasher).verify("a@x.com", STRONG_PASSWORD)


# ============================================
# Registration
# ============================================

class TestRegister:
    """Tests for account registration."""

    @pytest.mark.asyncio
    async def test_register_assigns_default_role(self, auth):
        principal = await auth.register("new@x.com", "Fresh#Pass1", person_id="p-1")

        assert principal.roles == frozenset({"USER"})
        assert principal.person_id == "p-1"

    @pytest.mark.asyncio
    async def test_register_duplicate(self, auth, account):
        with pytest.raises(ConflictError):
            await auth.register("a@x.com", "Fresh#Pass1")

    @pytest.mark.asyncio
    async def test_register_with_case_variant_roles(self, auth, users):
        principal = await auth.register("b@x.com", "Correct#1", roles=["admin", "ADMIN"])

        assert principal.roles == frozenset({"ADMIN"})
        assert (await users.find_by_email("b@x.com")).id == principal.id

    @pytest.mark.asyncio
    async def test_register_weak_password(self, auth, users):
        with pytest.raises(WeakPassword):
            await auth.register("new@x.com", "weak")
        assert await users.find_by_email("new@x.com") is None


# ============================================
# Login
# ============================================

class TestLogin:
    """Tests for login and the platform expiry policy."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "platform,refresh_ttl,persistent",
        [
            (Platform.WEB, timedelta(days=7), False),
            (Platform.MOBILE, timedelta(days=30), True),
            (Platform.WEB_PERSIST, timedelta(days=30), True),
        ],
    )
    async def test_login_stores_refresh_record(
        self, auth, refresh_tokens, clock, account, platform, refresh_ttl, persistent
    ):
        transport = await login(auth, platform)

        record = await refresh_tokens.find(transport.refresh_token)
        assert record is not None
        assert record.user_id == account.id
        assert record.platform == platform.value
        assert ensure_utc(record.expires_at) == clock.now + refresh_ttl
        assert transport.refresh_expires_at == clock.now + refresh_ttl
        assert transport.persistent is persistent

    @pytest.mark.asyncio
    async def test_login_wrong_password_issues_nothing(self, auth, account):
        transport = FakeTransport()
        with pytest.raises(InvalidCredentials):
            await auth.login("a@x.com", "Wrong#123", transport=transport)

        assert transport.access_token is None
        assert transport.refresh_token is None

    @pytest.mark.asyncio
    async def test_login_records_last_login(self, auth, account):
        await login(auth)
        assert account.last_login is not None

    @pytest.mark.asyncio
    async def test_access_token_resolves_to_principal(self, auth, account):
        transport = await login(auth)

        principal = await auth.principal_from_access_token(transport.access_token)
        assert principal.id == account.id
        assert "DOCTOR" in principal.roles

    @pytest.mark.asyncio
    async def test_access_token_expires(self, auth, clock, account):
        transport = await login(auth)
        clock.advance(hours=1, seconds=1)

        with pytest.raises(InvalidToken):
            await auth.principal_from_access_token(transport.access_token)


# ============================================
# Refresh (Rotation)
# ============================================

class TestRefresh:
    """Tests for single-use refresh token rotation."""

    @pytest.mark.asyncio
    async def test_refresh_rotates(self, auth, refresh_tokens, account):
        transport = await login(auth)
        old_token = transport.refresh_token

        principal = await auth.refresh(transport)

        assert principal.id == account.id
        assert transport.refresh_token != old_token
        assert await refresh_tokens.find(old_token) is None
        assert await refresh_tokens.find(transport.refresh_token) is not None

    @pytest.mark.asyncio
    async def test_refresh_token_works_once(self, auth, account):
        transport = await login(auth)
        old_token = transport.refresh_token
        await auth.refresh(transport)

        with pytest.raises(UnknownToken):
            await auth.refresh(FakeTransport(old_token))

    @pytest.mark.asyncio
    async def test_rotation_keeps_platform(self, auth, refresh_tokens, clock, account):
        transport = await login(auth, Platform.MOBILE)
        clock.advance(days=10)

        await auth.refresh(transport)

        record = await refresh_tokens.find(transport.refresh_token)
        assert record.platform == "mobile"
        assert ensure_utc(record.expires_at) == clock.now + timedelta(days=30)
        assert transport.persistent is True

    @pytest.mark.asyncio
    async def test_missing_token(self, auth):
        with pytest.raises(InvalidToken):
            await auth.refresh(FakeTransport(None))

    @pytest.mark.asyncio
    async def test_tampered_token(self, auth, account):
        transport = await login(auth)
        tampered = transport.refresh_token[:-2] + ("AA" if not transport.refresh_token.endswith("AA") else "BB")

        with pytest.raises(InvalidToken):
            await auth.refresh(FakeTransport(tampered))

    @pytest.mark.asyncio
    async def test_access_token_is_not_a_refresh_token(self, auth, account):
        transport = await login(auth)

        with pytest.raises(InvalidToken):
            await auth.refresh(FakeTransport(transport.access_token))

    @pytest.mark.asyncio
    async def test_validly_signed_but_never_stored(self, auth, issuer, account):
        from app.services.principal import SessionPrincipal

        pair = issuer.issue(SessionPrincipal.from_user(account))

        with pytest.raises(UnknownToken):
            await auth.refresh(FakeTransport(pair.refresh_token))

    @pytest.mark.asyncio
    async def test_record_owned_by_another_account_is_revoked(self, auth, issuer, refresh_tokens, account):
        from app.services.principal import SessionPrincipal

        stranger = SessionPrincipal(id="someone-else", email="b@x.com", roles=frozenset({"USER"}))
        pair = issuer.issue(stranger)
        await refresh_tokens.store(account.id, pair.refresh_token, pair.refresh_expires_at)

        with pytest.raises(InvalidToken):
            await auth.refresh(FakeTransport(pair.refresh_token))
        assert await refresh_tokens.find(pair.refresh_token) is None

    @pytest.mark.asyncio
    async def test_expired_record_is_deleted(self, auth, refresh_tokens, clock, account):
        transport = await login(auth, Platform.WEB)
        token = transport.refresh_token
        clock.advance(days=7)

        with pytest.raises(TokenExpired):
            await auth.refresh(FakeTransport(token))

        assert await refresh_tokens.find(token) is None
        with pytest.raises(UnknownToken):
            await auth.refresh(FakeTransport(token))

    @pytest.mark.asyncio
    async def test_concurrent_consumer_loses(self, auth, refresh_tokens, account, monkeypatch):
        transport = await login(auth)
        token = transport.refresh_token
        original_find = refresh_tokens.find

        async def racing_find(value):
            record = await original_find(value)
            # Another request consumes the token between lookup and delete
            await refresh_tokens.remove(value)
            return record

        monkeypatch.setattr(refresh_tokens, "find", racing_find)

        loser = FakeTransport(token)
        with pytest.raises(UnknownToken):
            await auth.refresh(loser)
        assert loser.access_token is None

    @pytest.mark.asyncio
    async def test_disabled_account_cannot_refresh(self, auth, users, refresh_tokens, account):
        transport = await login(auth)
        token = transport.refresh_token
        account.is_active = False
        await users.db.commit()

        with pytest.raises(InvalidToken):
            await auth.refresh(FakeTransport(token))
        assert await refresh_tokens.find(token) is None


# ============================================
# Logout
# ============================================

class TestLogout:
    """Tests for logout and logout-everywhere."""

    @pytest.mark.asyncio
    async def test_logout_removes_token(self, auth, refresh_tokens, account):
        transport = await login(auth)
        token = transport.refresh_token

        assert await auth.logout(transport) is True
        assert transport.cleared == 1
        assert await refresh_tokens.find(token) is None

    @pytest.mark.asyncio
    async def test_logout_is_idempotent(self, auth, account):
        transport = await login(auth)
        token = transport.refresh_token
        await auth.logout(FakeTransport(token))

        second = FakeTransport(token)
        assert await auth.logout(second) is False
        assert second.cleared == 1

    @pytest.mark.asyncio
    async def test_logout_without_token(self, auth):
        transport = FakeTransport(None)
        assert await auth.logout(transport) is False
        assert transport.cleared == 1

    @pytest.mark.asyncio
    async def test_logged_out_token_cannot_refresh(self, auth, account):
        transport = await login(auth)
        token = transport.refresh_token
        await auth.logout(FakeTransport(token))

        with pytest.raises(UnknownToken):
            await auth.refresh(FakeTransport(token))

    @pytest.mark.asyncio
    async def test_logout_all(self, auth, refresh_tokens, account):
        phone = await login(auth, Platform.MOBILE)
        laptop = await login(auth, Platform.WEB)

        assert await auth.logout_all(account.id, laptop) == 2
        assert laptop.cleared == 1
        assert await refresh_tokens.find(phone.refresh_token) is None


# ============================================
# Change Password
# ============================================

class TestChangePassword:
    """Tests for the authenticated password change."""

    @pytest.mark.asyncio
    async def test_change_password(self, auth, hasher, refresh_tokens, account):
        transport = await login(auth)

        revoked = await auth.change_password(account.id, STRONG_PASSWORD, "Brand#New2")

        assert revoked == 1
        assert hasher.verify("Brand#New2", account.hashed_password)
        assert await refresh_tokens.find(transport.refresh_token) is None
        await login(auth, password="Brand#New2")

    @pytest.mark.asyncio
    async def test_wrong_old_password(self, auth, account):
        old_hash = account.hashed_password

        with pytest.raises(InvalidCredentials):
            await auth.change_password(account.id, "Wrong#123", "Brand#New2")
        assert account.hashed_password == old_hash

    @pytest.mark.asyncio
    async def test_weak_new_password_keeps_hash(self, auth, account):
        old_hash = account.hashed_password

        with pytest.raises(WeakPassword):
            await auth.change_password(account.id, STRONG_PASSWORD, "short")
        assert account.hashed_password == old_hash

    @pytest.mark.asyncio
    async def test_unknown_account(self, auth):
        with pytest.raises(InvalidToken):
            await auth.change_password("missing", STRONG_PASSWORD, "Brand#New2")

    @pytest.mark.asyncio
    async def test_sessions_kept_when_revocation_disabled(
        self, users, refresh_tokens, issuer, hasher, clock, account
    ):
        auth = AuthService(
            users=users,
            refresh_tokens=refresh_tokens,
            issuer=issuer,
            hasher=hasher,
            revoke_sessions_on_password_change=False,
            clock=clock,
        )
        transport = await login(auth)

        assert await auth.change_password(account.id, STRONG_PASSWORD, "Brand#New2") == 0
        assert await refresh_tokens.find(transport.refresh_token) is not None
