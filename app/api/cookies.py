"""HttpOnly cookie implementation of the session transport."""

from datetime import datetime
from typing import Optional

from fastapi import Request, Response

from app.core.security import utcnow

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


class CookieTransport:
    """
    Session artifacts as HttpOnly, SameSite=strict cookies.

    ``secure`` is on in production. Persistent platforms (mobile,
    web-persist) get cookies that outlive the browser session; plain web
    sessions get session cookies.
    """

    def __init__(self, request: Request, response: Response, secure: bool):
        self.request = request
        self.response = response
        self.secure = secure

    def read_refresh_token(self) -> Optional[str]:
        return self.request.cookies.get(REFRESH_COOKIE) or None

    def _set(self, key: str, value: str, expires_at: datetime, persistent: bool) -> None:
        max_age = None
        if persistent:
            max_age = max(int((expires_at - utcnow()).total_seconds()), 0)
        self.response.set_cookie(
            key=key,
            value=value,
            max_age=max_age,
            httponly=True,
            secure=self.secure,
            samesite="strict",
            path="/",
        )

    def set_tokens(
        self,
        access_token: str,
        refresh_token: str,
        access_expires_at: datetime,
        refresh_expires_at: datetime,
        persistent: bool,
    ) -> None:
        self._set(ACCESS_COOKIE, access_token, access_expires_at, persistent)
        self._set(REFRESH_COOKIE, refresh_token, refresh_expires_at, persistent)

    def clear_tokens(self) -> None:
        for key in (ACCESS_COOKIE, REFRESH_COOKIE):
            self.response.delete_cookie(
                key=key,
                httponly=True,
                secure=self.secure,
                samesite="strict",
                path="/",
            )
