"""Per-key fixed-window rate limiter (in-memory).

Each key owns a counter and a window expiry. Expiry is checked on every
access, so correctness never depends on the sweep; the sweep only bounds
memory by dropping entries whose window has already passed.
"""
import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass
from typing import NamedTuple

from fastapi import Request

from app.config import settings

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_MS = 5 * 60 * 1000
CLIENT_KEY_LENGTH = 16


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float


class RateLimitResult(NamedTuple):
    allowed: bool
    remaining: int


def _now_ms() -> float:
    return time.monotonic() * 1000


class RateLimiter:
    def __init__(self, cleanup_interval_ms: float = CLEANUP_INTERVAL_MS) -> None:
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = asyncio.Lock()
        self._cleanup_interval_ms = cleanup_interval_ms
        self._last_cleanup = _now_ms()

    async def check(self, key: str, max_requests: int, window_ms: int) -> RateLimitResult:
        """Charge one request against ``key`` and report whether it is allowed.

        Rejected requests are not counted. Raises ValueError on an empty key
        or a non-positive limit/window.
        """
        if not key:
            raise ValueError("Rate limit key must not be empty")
        if max_requests < 1:
            raise ValueError(f"max_requests must be >= 1, got {max_requests}")
        if window_ms < 1:
            raise ValueError(f"window_ms must be >= 1, got {window_ms}")

        async with self._lock:
            now = _now_ms()
            if now - self._last_cleanup >= self._cleanup_interval_ms:
                self._sweep(now)

            entry = self._entries.get(key)
            if entry is None or entry.reset_at < now:
                self._entries[key] = RateLimitEntry(count=1, reset_at=now + window_ms)
                return RateLimitResult(allowed=True, remaining=max_requests - 1)

            if entry.count >= max_requests:
                return RateLimitResult(allowed=False, remaining=0)

            entry.count += 1
            return RateLimitResult(allowed=True, remaining=max_requests - entry.count)

    async def cleanup(self) -> None:
        """Drop every entry whose window has expired (call periodically)."""
        async with self._lock:
            self._sweep(_now_ms())

    def reset(self) -> None:
        self._entries.clear()
        self._last_cleanup = _now_ms()

    def _sweep(self, now: float) -> None:
        self._last_cleanup = now
        expired = [key for key, entry in self._entries.items() if entry.reset_at < now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Rate limiter swept %d expired entries", len(expired))


def client_address(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then "unknown".

    Must be deployed behind a reverse proxy that overwrites these headers,
    otherwise clients can pick their own bucket.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or "unknown"


def derive_client_key(request: Request) -> str:
    """Salted, truncated SHA-256 of the client address."""
    ip = client_address(request)
    digest = hashlib.sha256((ip + settings.ip_hash_salt).encode()).hexdigest()
    return digest[:CLIENT_KEY_LENGTH]


def rate_limit_key(action: str, request: Request) -> str:
    return f"{action}:{derive_client_key(request)}"


rate_limiter = RateLimiter(
    cleanup_interval_ms=settings.rate_limit_cleanup_interval_seconds * 1000,
)
