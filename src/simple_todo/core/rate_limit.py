"""
Fixed-window rate limiting keyed by client IP.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

import structlog
from fastapi import Request

from .exceptions import RateLimitError
from .security import get_client_ip

logger = structlog.get_logger(__name__)


@dataclass
class WindowState:
    """Request count for one client within its current window."""
    count: int
    reset_time: float


class RateLimiter:
    """
    Per-client fixed-window rate limiter.

    A client's first request, or its first request after the window has
    expired, opens a new window. Requests are rejected while the count has
    reached max_requests.
    """

    def __init__(
        self,
        window_seconds: float,
        max_requests: int,
        scope: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.scope = scope
        self.clients: Dict[str, WindowState] = {}
        self._clock = clock
        self._lock: Optional[asyncio.Lock] = None
        self._next_prune = clock() + window_seconds

    async def check_rate_limit(self, client_id: str) -> None:
        """
        Count a request for client_id.

        Raises RateLimitError if the client has used up its window.
        """
        if self._lock is None:
            # Created on first use so it binds to the serving event loop
            self._lock = asyncio.Lock()

        async with self._lock:
            now = self._clock()
            self._prune_expired(now)

            state = self.clients.get(client_id)
            if state is None or now > state.reset_time:
                self.clients[client_id] = WindowState(
                    count=1,
                    reset_time=now + self.window_seconds,
                )
                return

            if state.count >= self.max_requests:
                retry_after = max(1, int(state.reset_time - now + 0.999))
                logger.warning(
                    "Rate limit exceeded",
                    scope=self.scope,
                    client_ip=client_id,
                    retry_after=retry_after,
                    max_requests=self.max_requests,
                )
                raise RateLimitError(retry_after=retry_after)

            state.count += 1
            logger.debug(
                "Rate limit check passed",
                scope=self.scope,
                client_ip=client_id,
                count=state.count,
                max_requests=self.max_requests,
            )

    def _prune_expired(self, now: float) -> None:
        """Drop clients whose window has ended; runs at most once per window."""
        if now < self._next_prune:
            return
        expired = [client for client, state in self.clients.items() if now > state.reset_time]
        for client in expired:
            del self.clients[client]
        self._next_prune = now + self.window_seconds
        if expired:
            logger.debug("Pruned rate limit windows", scope=self.scope, pruned=len(expired))

    def reset(self) -> None:
        self.clients.clear()


def rate_limit(scope: str) -> Callable[[Request], Awaitable[None]]:
    """
    Build a route dependency enforcing the limiter registered for scope.

    Limiters live on app.state.rate_limiters; when rate limiting is
    disabled no limiter is registered and the dependency is a no-op.
    """

    async def dependency(request: Request) -> None:
        limiters: Optional[Dict[str, RateLimiter]] = getattr(
            request.app.state, "rate_limiters", None
        )
        if not limiters or scope not in limiters:
            return

        settings = request.app.state.settings
        client_ip = get_client_ip(request, trust_proxy=settings.security.trust_proxy)
        try:
            await limiters[scope].check_rate_limit(client_ip)
        except RateLimitError:
            metrics = getattr(request.app.state, "metrics", None)
            if metrics:
                metrics.record_rate_limited(scope)
            raise

    return dependency
