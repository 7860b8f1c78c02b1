"""User and auth schemas for API validation."""

from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from app.services.principal import SessionPrincipal

PlatformTag = Literal["web", "mobile", "web-persist"]


class UserCreate(BaseModel):
    """Schema for user registration. Strength is checked by the service."""
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    person_id: Optional[str] = Field(None, max_length=36)


class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str
    platform: PlatformTag = "web"


class PrincipalResponse(BaseModel):
    """Authenticated identity. Roles are a set; sorted for stable output."""
    id: str
    email: str
    roles: List[str]
    person_id: Optional[str] = None

    @classmethod
    def from_principal(cls, principal: SessionPrincipal) -> "PrincipalResponse":
        return cls(
            id=principal.id,
            email=principal.email,
            roles=sorted(principal.roles),
            person_id=principal.person_id,
        )


class SessionResponse(BaseModel):
    """Login/register/refresh response. Tokens travel in cookies, never here."""
    message: str
    user: PrincipalResponse


class MessageResponse(BaseModel):
    """Simple message response."""
    message: str


class PasswordChange(BaseModel):
    """Schema for password change."""
    old_password: str
    new_password: str


class ForgotPassword(BaseModel):
    """Schema for requesting a reset link."""
    email: EmailStr


class ResetPassword(BaseModel):
    """Schema for consuming a reset token."""
    token: str = Field(min_length=1, max_length=256)
    new_password: str
