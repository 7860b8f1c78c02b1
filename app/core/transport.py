"""
Transport boundary for session artifacts.

The session protocol only needs to read the refresh artifact and to set or
clear the pair. How that maps onto the wire (cookies, headers, a mobile
keychain bridge) is up to the implementation.
"""

from datetime import datetime
from typing import Optional, Protocol


class SessionTransport(Protocol):
    def read_refresh_token(self) -> Optional[str]:
        """Return the refresh artifact presented by the client, if any."""

    def set_tokens(
        self,
        access_token: str,
        refresh_token: str,
        access_expires_at: datetime,
        refresh_expires_at: datetime,
        persistent: bool,
    ) -> None:
        """Hand both artifacts to the client."""

    def clear_tokens(self) -> None:
        """Remove both artifacts from the client."""
