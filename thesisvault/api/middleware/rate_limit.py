"""
Rate limiting for credential endpoints.

Sliding window per client IP over the login and sign-up routes, in
memory. A single API instance is assumed.
"""

import asyncio
import logging
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Optional, Tuple

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from thesisvault.api.middleware.error_handler import create_error_response

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    requests_per_minute: int = 10
    window_seconds: float = 60.0
    enabled: bool = True

    # Only these path prefixes are limited
    protected_paths: list = field(default_factory=lambda: [
        "/api/v1/auth/token",
        "/api/v1/auth/signup",
        "/api/v1/auth/me/password",
    ])

    # Proxy headers are only read when the API sits behind a known proxy
    trust_proxy_headers: bool = False
    trusted_proxy_headers: list = field(default_factory=lambda: [
        "X-Forwarded-For",
        "X-Real-IP",
    ])

    # Idle keys are swept at most this often
    cleanup_interval_seconds: float = 300.0


class SlidingWindowRateLimiter:
    """Timestamps of recent hits per key; limits hits inside the window."""

    def __init__(self, config: RateLimitConfig):
        self.config = config
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._last_cleanup: Optional[float] = None

    @property
    def tracked_keys(self) -> int:
        return len(self._hits)

    def _cleanup_idle_keys(self, now: float) -> None:
        """Drop keys whose newest hit has left the window. Caller holds the lock."""
        if self._last_cleanup is None:
            self._last_cleanup = now
            return
        if now - self._last_cleanup < self.config.cleanup_interval_seconds:
            return

        window = self.config.window_seconds
        idle = [key for key, hits in self._hits.items() if not hits or now - hits[-1] >= window]
        for key in idle:
            del self._hits[key]

        if idle:
            logger.debug(f"Rate limiter dropped {len(idle)} idle keys")
        self._last_cleanup = now

    async def check(self, key: str, now: Optional[float] = None) -> Tuple[bool, int, float]:
        """
        Record a hit for `key` if allowed.

        Returns:
            (allowed, remaining, seconds until the oldest hit leaves the window)
        """
        now = time.monotonic() if now is None else now
        limit = self.config.requests_per_minute
        window = self.config.window_seconds

        async with self._lock:
            self._cleanup_idle_keys(now)

            hits = self._hits[key]
            while hits and now - hits[0] >= window:
                hits.popleft()

            if len(hits) >= limit:
                return False, 0, window - (now - hits[0])

            hits.append(now)
            reset = window - (now - hits[0])
            return True, limit - len(hits), reset


class RateLimitMiddleware(BaseHTTPMiddleware):
    """FastAPI middleware that rejects bursts against credential endpoints."""

    def __init__(
        self,
        app: FastAPI,
        config: Optional[RateLimitConfig] = None,
        limiter: Optional[SlidingWindowRateLimiter] = None,
    ):
        super().__init__(app)
        self.config = config or RateLimitConfig()
        self.limiter = limiter or SlidingWindowRateLimiter(self.config)

    def _client_identifier(self, request: Request) -> str:
        if self.config.trust_proxy_headers:
            for header in self.config.trusted_proxy_headers:
                forwarded = request.headers.get(header)
                if forwarded:
                    return f"ip:{forwarded.split(',')[0].strip()}"
        if request.client:
            return f"ip:{request.client.host}"
        return "unknown"

    def _is_protected(self, path: str) -> bool:
        return any(path.startswith(p) for p in self.config.protected_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.config.enabled or request.method == "OPTIONS" or not self._is_protected(request.url.path):
            return await call_next(request)

        identifier = self._client_identifier(request)
        key = f"{identifier}:{request.url.path}"

        allowed, remaining, reset = await self.limiter.check(key)

        if not allowed:
            retry_after = int(reset) + 1
            logger.warning(f"Rate limit exceeded for {identifier} on {request.url.path}")
            return create_error_response(
                error="Too many attempts. Please try again later.",
                code="RATE_LIMIT_EXCEEDED",
                status_code=429,
                detail=f"Maximum {self.config.requests_per_minute} requests per minute",
                headers={
                    "Retry-After": str(retry_after),
                    "X-Rate-Limit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers["X-Rate-Limit-Remaining"] = str(remaining)
        return response


def setup_rate_limiting(
    app: FastAPI,
    config: Optional[RateLimitConfig] = None,
) -> SlidingWindowRateLimiter:
    """Add rate limiting middleware; returns the limiter for inspection."""
    if config is None:
        config = RateLimitConfig()

    limiter = SlidingWindowRateLimiter(config)
    app.add_middleware(RateLimitMiddleware, config=config, limiter=limiter)

    return limiter
