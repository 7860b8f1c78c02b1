"""
Simple in-memory rate limiter for the login and password reset endpoints.

Sliding window per (limit type, identifier). For production with multiple
instances, move the counters to Redis.
"""

import time
import logging
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, List, Tuple

from app.core.config import Settings
from app.core.exceptions import RateLimited

logger = logging.getLogger(__name__)

LOGIN_IP = "login_ip"
RESET_IP = "password_reset_ip"
RESET_EMAIL = "password_reset_email"


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""
    max_requests: int  # Maximum requests allowed
    window_seconds: int  # Time window in seconds


class RateLimiter:
    """Thread-safe in-memory rate limiter using a sliding window."""

    def __init__(
        self,
        configs: Dict[str, RateLimitConfig],
        clock: Callable[[], float] = time.time,
    ):
        self._requests: Dict[str, List[float]] = {}
        self._lock = Lock()
        self.configs = configs
        self.clock = clock
        # Idle keys are swept once per shortest window
        self._sweep_every = min((c.window_seconds for c in configs.values()), default=0)
        self._last_sweep = clock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimiter":
        return cls({
            # Login: 10 attempts per 15 minutes per IP
            LOGIN_IP: RateLimitConfig(settings.login_rate_limit, settings.login_rate_window_seconds),
            RESET_IP: RateLimitConfig(settings.reset_rate_limit_ip, settings.reset_rate_window_seconds),
            RESET_EMAIL: RateLimitConfig(settings.reset_rate_limit_email, settings.reset_rate_window_seconds),
        })

    def _cleanup_old_requests(self, key: str, window_seconds: int, now: float) -> List[float]:
        cutoff = now - window_seconds
        kept = [ts for ts in self._requests.get(key, ()) if ts > cutoff]
        if kept:
            self._requests[key] = kept
        else:
            self._requests.pop(key, None)
        return kept

    def _sweep(self, now: float) -> None:
        """Drop every key whose window has fully passed. Caller holds the lock."""
        for key in list(self._requests):
            config = self.configs.get(key.split(":", 1)[0])
            if config is not None:
                self._cleanup_old_requests(key, config.window_seconds, now)
        self._last_sweep = now

    def is_allowed(self, limit_type: str, identifier: str) -> Tuple[bool, int]:
        """
        Check if a request is allowed and record it when it is.

        Returns:
            Tuple of (is_allowed: bool, retry_after_seconds: int)
        """
        if limit_type not in self.configs:
            logger.warning(f"Unknown rate limit type: {limit_type}")
            return True, 0

        config = self.configs[limit_type]
        key = f"{limit_type}:{identifier}"

        with self._lock:
            now = self.clock()
            if now - self._last_sweep >= self._sweep_every:
                self._sweep(now)
            recent = self._cleanup_old_requests(key, config.window_seconds, now)

            if len(recent) >= config.max_requests:
                retry_after = int(min(recent) + config.window_seconds - now) + 1
                return False, max(retry_after, 1)

            self._requests[key] = recent + [now]
            return True, 0

    def check(self, limit_type: str, identifier: str) -> None:
        """Record a request, raising RateLimited when over the limit."""
        allowed, retry_after = self.is_allowed(limit_type, identifier)
        if not allowed:
            logger.warning(f"Rate limit exceeded for {limit_type}: {identifier[:20]}...")
            raise RateLimited(retry_after)


def get_client_ip(request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # First entry is the original client
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"
