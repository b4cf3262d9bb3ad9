"""
Request-level security helpers.

- FailedLoginTracker: counts failed logins per IP and blocks noisy IPs
- client_ip(): client address, honoring forwarding headers from trusted proxies only
- CSRF tokens
- Response security headers
"""

from __future__ import annotations

import logging
import secrets

from typing import Collection

from starlette.requests import Request

from hearth.storage.base import CacheStorage

logger = logging.getLogger(__name__)


SECURITY_HEADERS: dict[str, str] = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}


# =============================================================================
# Failed login tracking
# =============================================================================


class FailedLoginTracker:
    """
    Per-IP failed login counter with a derived blocked set.

    State lives in CacheStorage with TTLs. With the in-memory cache it is
    local to one process and lost on restart; point it at a shared cache
    when running several instances.

    The attempt counter expires ``window_seconds`` after the last failure.
    Once an IP exceeds ``max_attempts`` it stays blocked for another window
    or until ``clear()``.
    """

    def __init__(self, cache: CacheStorage, window_seconds: int = 3600, max_attempts: int = 10):
        self.cache = cache
        self.window_seconds = window_seconds
        self.max_attempts = max_attempts

    @staticmethod
    def _attempts_key(ip: str) -> str:
        return f"login_attempts:{ip}"

    @staticmethod
    def _blocked_key(ip: str) -> str:
        return f"blocked_ip:{ip}"

    async def is_blocked(self, ip: str) -> bool:
        return await self.cache.exists(self._blocked_key(ip))

    async def attempts(self, ip: str) -> int:
        return int(await self.cache.get(self._attempts_key(ip)) or 0)

    async def track_failure(self, ip: str) -> bool:
        """
        Count a failed attempt.

        Returns True if the IP is now blocked.
        """
        count = await self.attempts(ip) + 1
        await self.cache.set(self._attempts_key(ip), count, ttl=self.window_seconds)

        if count > self.max_attempts:
            await self.cache.set(self._blocked_key(ip), True, ttl=self.window_seconds)
            logger.warning(f"Blocked {ip} after {count} failed login attempts")
            return True

        return False

    async def clear(self, ip: str) -> None:
        await self.cache.delete(self._attempts_key(ip))
        await self.cache.delete(self._blocked_key(ip))


# =============================================================================
# Helpers
# =============================================================================


def client_ip(request: Request, trusted_proxies: Collection[str] = ()) -> str:
    """
    The address failed logins and blocks are counted against.

    X-Forwarded-For (first hop) and X-Real-IP are only believed when the
    socket peer is one of ``trusted_proxies``.
    """
    peer = request.client.host if request.client else None
    if peer is None or peer not in trusted_proxies:
        return peer or "unknown"

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return peer


def generate_csrf_token() -> str:
    return secrets.token_hex(32)


def verify_csrf_token(token: str, expected: str) -> bool:
    """Constant-time comparison of two CSRF tokens."""
    if not token or not expected:
        return False
    return secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))
