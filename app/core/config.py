"""Application configuration settings."""

import logging
from datetime import timedelta
from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

from app.core.durations import parse_duration

logger = logging.getLogger(__name__)

# Only ever used outside production
DEV_SIGNING_SECRET = "medecare-dev-signing-secret-do-not-use-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "MedEcare Auth API"
    app_env: str = "development"  # development, production, test
    debug: bool = True

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = "sqlite+aiosqlite:///./medecare_auth.db"

    # JWT Authentication
    jwt_secret_key: Optional[str] = None
    jwt_algorithm: str = "HS256"
    access_expiry_web: str = "1h"
    access_expiry_mobile: str = "24h"
    refresh_expiry_web: str = "7d"
    refresh_expiry_mobile: str = "30d"

    # Passwords
    bcrypt_rounds: int = 12
    password_reset_expire_minutes: int = 60
    revoke_sessions_on_password_change: bool = True

    # Refresh token hygiene (0 disables the background sweeper)
    refresh_token_sweep_interval_seconds: int = 3600

    # Frontend (reset links point here)
    frontend_url: str = "http://localhost:3000"

    # SMTP
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from_email: str = "no-reply@medecare.local"
    smtp_from_name: str = "MedEcare"
    smtp_use_tls: bool = True

    # Rate limiting
    login_rate_limit: int = 10
    login_rate_window_seconds: int = 900
    reset_rate_limit_ip: int = 5
    reset_rate_limit_email: int = 3
    reset_rate_window_seconds: int = 3600

    # CORS
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Security
    allowed_hosts: str = "*"

    @field_validator(
        "access_expiry_web",
        "access_expiry_mobile",
        "refresh_expiry_web",
        "refresh_expiry_mobile",
    )
    @classmethod
    def _check_duration(cls, value: str) -> str:
        parse_duration(value)
        return value

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def signing_secret(self) -> Optional[str]:
        """
        Secret used to sign access and refresh tokens.

        Falls back to a fixed development secret outside production; in
        production a missing secret yields None and token issuing fails.
        """
        if self.jwt_secret_key:
            return self.jwt_secret_key
        if self.is_production:
            return None
        return DEV_SIGNING_SECRET

    @property
    def access_ttl_web(self) -> timedelta:
        return parse_duration(self.access_expiry_web)

    @property
    def access_ttl_mobile(self) -> timedelta:
        return parse_duration(self.access_expiry_mobile)

    @property
    def refresh_ttl_web(self) -> timedelta:
        return parse_duration(self.refresh_expiry_web)

    @property
    def refresh_ttl_mobile(self) -> timedelta:
        return parse_duration(self.refresh_expiry_mobile)

    @property
    def password_reset_ttl(self) -> timedelta:
        return timedelta(minutes=self.password_reset_expire_minutes)

    @property
    def allowed_hosts_list(self) -> List[str]:
        """Get allowed hosts as a list."""
        return [host.strip() for host in self.allowed_hosts.split(",")]

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
