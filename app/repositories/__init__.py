"""Explicitly constructed data stores, one per request session."""

from app.repositories.users import UserStore, normalize_email
from app.repositories.refresh_tokens import RefreshTokenStore

__all__ = ["UserStore", "RefreshTokenStore", "normalize_email"]
