"""Admission control for docgate.

This module provides a sliding window rate limiter keyed by client
address. It is the first gate every request passes through, ahead of
capability verification.
"""

import json
import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List

from starlette.requests import Request

from docgate.core.clock import Clock, system_clock
from docgate.core.exceptions import RateLimitedError
from docgate.core.locks import StripedLocks

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for the admission window.

    Attributes:
        requests: Maximum number of requests admitted per window
        window_seconds: Width of the sliding window in seconds
    """

    requests: int = 10
    window_seconds: float = 60.0


@dataclass
class RateWindow:
    """Admission timestamps (monotonic seconds) for a single key."""

    timestamps: Deque[float] = field(default_factory=deque)

    def expire(self, now: float, window_seconds: float) -> None:
        horizon = now - window_seconds
        while self.timestamps and self.timestamps[0] <= horizon:
            self.timestamps.popleft()


@dataclass
class RateLimitInfo:
    """What an admitted request is told about its window."""

    limit: int
    remaining: int
    reset_seconds: int


class RateLimiter:
    """In-memory sliding window rate limiter.

    Each key keeps the timestamps of its admitted requests. A request is
    admitted while fewer than ``config.requests`` timestamps fall inside the
    last ``config.window_seconds``; rejected requests are not recorded.
    Updates to one key are serialized through a striped lock table.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        clock: Clock | None = None,
        locks: StripedLocks | None = None,
        cleanup_interval: float = 300.0,
        trusted_proxies: List[str] | None = None,
        trust_x_forwarded_for: bool = False,
    ):
        """Initialize the rate limiter.

        Args:
            config: Window width and admission ceiling
            clock: Time source; windows use its monotonic clock
            locks: Lock table guarding per-key windows
            cleanup_interval: How often idle windows are purged (seconds)
            trusted_proxies: List of trusted proxy IPs that can set X-Forwarded-For
            trust_x_forwarded_for: If True, always trust X-Forwarded-For header.
                                   Only enable if behind a trusted reverse proxy.
        """
        self.config = config or RateLimitConfig()
        self.clock = clock or system_clock
        self._locks = locks or StripedLocks()
        self._storage: Dict[str, RateWindow] = {}
        self.cleanup_interval = cleanup_interval
        self._last_cleanup = self.clock.monotonic()
        self.trusted_proxies = set(trusted_proxies or [])
        self.trust_x_forwarded_for = trust_x_forwarded_for

    def client_key(self, request: Request) -> str:
        """Derive the admission key for a request.

        Args:
            request: The incoming request

        Returns:
            The rate limit key
        """
        direct_ip = request.client.host if request.client else "unknown"
        client_ip = direct_ip

        # X-Forwarded-For is client-controlled unless set by a known proxy
        if self.trust_x_forwarded_for or direct_ip in self.trusted_proxies:
            forwarded = request.headers.get("X-Forwarded-For")
            if forwarded:
                client_ip = forwarded.split(",")[0].strip()

        return f"ip:{client_ip}"

    async def check_rate_limit(self, request: Request) -> RateLimitInfo:
        """Admit or reject a request.

        Raises:
            RateLimitedError: If the client's window is full
        """
        return await self.admit(self.client_key(request))

    async def admit(self, key: str) -> RateLimitInfo:
        """Admit one event for ``key`` or reject it.

        Args:
            key: The client identifier

        Returns:
            Remaining budget and seconds until the window frees a slot

        Raises:
            RateLimitedError: If ``config.requests`` events were already
                admitted within the window
        """
        limit = self.config.requests
        window_seconds = self.config.window_seconds

        async with self._locks.hold(key):
            now = self.clock.monotonic()
            self._maybe_cleanup(now)

            entry = self._storage.get(key)
            if entry is None:
                entry = self._storage[key] = RateWindow()
            entry.expire(now, window_seconds)

            if len(entry.timestamps) >= limit:
                retry_after = math.ceil(entry.timestamps[0] + window_seconds - now)
                logger.info(f"Rate limit exceeded for {key}")
                raise RateLimitedError(
                    f"Rate limit exceeded. Maximum {limit} requests per "
                    f"{window_seconds:g} seconds.",
                    retry_after=max(1, retry_after),
                )

            entry.timestamps.append(now)

            reset_seconds = math.ceil(entry.timestamps[0] + window_seconds - now)
            return RateLimitInfo(
                limit=limit,
                remaining=limit - len(entry.timestamps),
                reset_seconds=max(0, reset_seconds),
            )

    def _maybe_cleanup(self, now: float) -> None:
        """Periodically drop windows with no live timestamps."""
        if now - self._last_cleanup < self.cleanup_interval:
            return
        self._last_cleanup = now

        # No awaits below, so no other coroutine can touch the table meanwhile
        for key in list(self._storage):
            entry = self._storage[key]
            entry.expire(now, self.config.window_seconds)
            if not entry.timestamps:
                del self._storage[key]

    def reset(self, key: str) -> None:
        """Reset the window for a specific key.

        Args:
            key: The rate limit key to reset
        """
        self._storage.pop(key, None)

    def reset_all(self) -> None:
        """Reset all windows (useful for testing)."""
        self._storage.clear()


class RateLimitMiddleware:
    """ASGI middleware that runs every HTTP request through the limiter.

    Being middleware, it runs before any route dependency, so a rejected
    request never reaches capability verification.
    """

    def __init__(
        self,
        app,
        limiter: RateLimiter,
        exclude_paths: List[str] | None = None,
    ):
        """Initialize the middleware.

        Args:
            app: The ASGI application
            limiter: The RateLimiter instance
            exclude_paths: Paths to exclude from rate limiting
        """
        self.app = app
        self.limiter = limiter
        self.exclude_paths = set(exclude_paths or ["/health", "/docs", "/openapi.json"])

    async def __call__(self, scope, receive, send):
        """ASGI middleware interface."""
        if scope["type"] != "http" or scope["path"] in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)

        try:
            rate_info = await self.limiter.check_rate_limit(request)
        except RateLimitedError as e:
            response_body = json.dumps({
                "error": "rate_limited",
                "message": e.message,
                "retry_after": e.retry_after,
            }).encode()

            await send({
                "type": "http.response.start",
                "status": 429,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"retry-after", str(e.retry_after or 60).encode()),
                ],
            })
            await send({
                "type": "http.response.body",
                "body": response_body,
            })
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.extend([
                    (b"x-ratelimit-limit", str(rate_info.limit).encode()),
                    (b"x-ratelimit-remaining", str(rate_info.remaining).encode()),
                    (b"x-ratelimit-reset", str(rate_info.reset_seconds).encode()),
                ])
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_with_headers)
