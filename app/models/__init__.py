"""Database models."""

from app.models.user import User
from app.models.role import Role, UserRole
from app.models.refresh_token import RefreshToken

__all__ = [
    "User",
    "Role",
    "UserRole",
    "RefreshToken",
]
