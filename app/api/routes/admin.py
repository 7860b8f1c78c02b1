"""Administrative session and account control (ADMIN role only)."""

import logging

from fastapi import APIRouter, Depends

from app.core.dependencies import AdminPrincipal, get_refresh_token_store, get_user_store
from app.core.exceptions import ConflictError, NotFound
from app.repositories import RefreshTokenStore, UserStore
from app.schemas.user import MessageResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.delete("/users/{user_id}/sessions", response_model=MessageResponse)
async def revoke_user_sessions(
    user_id: str,
    admin: AdminPrincipal,
    refresh_tokens: RefreshTokenStore = Depends(get_refresh_token_store),
):
    """Invalidate every refresh token of an account (log out everywhere)."""
    count = await refresh_tokens.remove_all_for_account(user_id)
    logger.info(f"Admin {admin.id[:8]}... revoked {count} session(s) of user {user_id[:8]}...")
    return MessageResponse(message=f"Revoked {count} session(s).")


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: str,
    admin: AdminPrincipal,
    users: UserStore = Depends(get_user_store),
    refresh_tokens: RefreshTokenStore = Depends(get_refresh_token_store),
):
    """Delete an account. Its refresh tokens are removed first."""
    if user_id == admin.id:
        raise ConflictError("Administrators cannot delete their own account")

    user = await users.find_by_id(user_id)
    if user is None:
        raise NotFound("User not found")

    await refresh_tokens.remove_all_for_account(user_id)
    await users.delete(user)
    logger.info(f"Admin {admin.id[:8]}... deleted user {user_id[:8]}...")
    return MessageResponse(message="User deleted successfully.")
