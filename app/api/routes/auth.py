"""Authentication endpoints."""

import logging

from fastapi import APIRouter, Request, status

from app.core.dependencies import Auth, CurrentPrincipal, Limiter, PasswordReset, Transport
from app.core.rate_limiter import LOGIN_IP, RESET_EMAIL, RESET_IP, get_client_ip
from app.schemas.user import (
    ForgotPassword,
    MessageResponse,
    PasswordChange,
    PrincipalResponse,
    ResetPassword,
    SessionResponse,
    UserCreate,
    UserLogin,
)
from app.services.token_service import Platform

logger = logging.getLogger(__name__)
router = APIRouter()


# ─────────────────────────────────────────────
# Register
# ─────────────────────────────────────────────

@router.post("/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, auth: Auth):
    """
    Register a new account with the default USER role.
    Does not log the user in.
    """
    principal = await auth.register(
        email=user_data.email,
        password=user_data.password,
        person_id=user_data.person_id,
    )
    return SessionResponse(
        message="Registration successful.",
        user=PrincipalResponse.from_principal(principal),
    )


# ─────────────────────────────────────────────
# Login
# ─────────────────────────────────────────────

@router.post("/login", response_model=SessionResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    auth: Auth,
    transport: Transport,
    limiter: Limiter,
):
    """
    Authenticate a user.
    Access and refresh tokens are set as HttpOnly cookies.

    Rate limited: 10 attempts per 15 minutes per IP.
    """
    limiter.check(LOGIN_IP, get_client_ip(request))

    principal = await auth.login(
        credentials.email,
        credentials.password,
        transport=transport,
        platform=Platform(credentials.platform),
    )
    return SessionResponse(
        message="Login successful.",
        user=PrincipalResponse.from_principal(principal),
    )


# ─────────────────────────────────────────────
# Refresh Token (Rotation)
# ─────────────────────────────────────────────

@router.post("/refresh", response_model=SessionResponse)
async def refresh_token(auth: Auth, transport: Transport):
    """
    Consume the refresh token cookie and set a brand new token pair.
    A refresh token works exactly once.
    """
    principal = await auth.refresh(transport)
    return SessionResponse(
        message="Tokens successfully refreshed.",
        user=PrincipalResponse.from_principal(principal),
    )


# ─────────────────────────────────────────────
# Logout
# ─────────────────────────────────────────────

@router.post("/logout", response_model=MessageResponse)
async def logout(auth: Auth, transport: Transport):
    """Invalidate the current refresh token (if any) and clear both cookies."""
    removed = await auth.logout(transport)
    if removed:
        return MessageResponse(message="Logout successful. Refresh token invalidated.")
    return MessageResponse(message="Logout successful.")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(principal: CurrentPrincipal, auth: Auth, transport: Transport):
    """Invalidate every refresh token of the current user (all devices)."""
    count = await auth.logout_all(principal.id, transport)
    return MessageResponse(message=f"Logged out of {count} session(s).")


# ─────────────────────────────────────────────
# Current User
# ─────────────────────────────────────────────

@router.get("/me", response_model=PrincipalResponse)
async def get_current_user(principal: CurrentPrincipal):
    """Return the authenticated user's identity and roles."""
    return PrincipalResponse.from_principal(principal)


# ─────────────────────────────────────────────
# Change Password
# ─────────────────────────────────────────────

@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    password_data: PasswordChange,
    principal: CurrentPrincipal,
    auth: Auth,
):
    """
    Change the user's password.
    Requires the current password even though the caller is authenticated.
    """
    revoked = await auth.change_password(
        principal.id,
        password_data.old_password,
        password_data.new_password,
    )
    if revoked:
        return MessageResponse(
            message="Password changed successfully. Please sign in again on your devices."
        )
    return MessageResponse(message="Password changed successfully.")


# ─────────────────────────────────────────────
# Forgot Password - Step 1: Request reset link
# ─────────────────────────────────────────────

@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: ForgotPassword,
    request: Request,
    reset_service: PasswordReset,
    limiter: Limiter,
):
    """
    Request a password reset link.

    Always returns the same message to prevent user enumeration.

    Rate limited: per IP and per email.
    """
    email = data.email.lower()
    limiter.check(RESET_IP, get_client_ip(request))
    limiter.check(RESET_EMAIL, email)

    try:
        await reset_service.request_reset(email)
    except Exception as e:
        # Same answer whether or not anything went wrong
        logger.error(f"Failed to process password reset: {e}")

    return MessageResponse(
        message="Reset instructions sent to the provided email address (if valid)."
    )


# ─────────────────────────────────────────────
# Forgot Password - Step 2: Reset Password
# ─────────────────────────────────────────────

@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(data: ResetPassword, reset_service: PasswordReset):
    """
    Set a new password using the emailed reset token.
    The token is single use and all existing sessions are invalidated.
    """
    await reset_service.consume_reset(data.token, data.new_password)
    return MessageResponse(message="Password has been reset successfully. You can now log in.")
