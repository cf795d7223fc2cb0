# app/infra/rate_limiter.py
"""
Per-client sliding-window limiter for ``POST /api/auth/login``.

Attempts are remembered per client IP for ``window_seconds``.  A client
whose window empties is forgotten, so the table only holds clients seen
within the last window.
"""
from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Optional

from fastapi import HTTPException, Request, status

from app.infra.logging_config import get_logger

logger = get_logger(__name__)


class InMemoryRateLimiter:
    """Sliding window of attempt timestamps, one deque per client."""

    def __init__(self, max_requests: int, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._attempts: dict[str, deque[float]] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._attempts)

    def is_allowed(self, client: str, now: Optional[float] = None) -> tuple[bool, Optional[int]]:
        """
        Record an attempt for ``client`` if it fits in the window.

        Returns:
            (allowed, retry_after_seconds)
        """
        now = time.monotonic() if now is None else now
        cutoff = now - self.window_seconds

        with self._lock:
            self._evict_expired(cutoff)
            attempts = self._attempts.setdefault(client, deque())

            if len(attempts) >= self.max_requests:
                retry_after = int(attempts[0] + self.window_seconds - now) + 1
                logger.warning(
                    "Login rate limit exceeded for client=%s", client,
                    extra={"limit": self.max_requests, "retry_after": retry_after},
                )
                return False, retry_after

            attempts.append(now)
            return True, None

    def _evict_expired(self, cutoff: float) -> None:
        for client in list(self._attempts):
            attempts = self._attempts[client]
            while attempts and attempts[0] <= cutoff:
                attempts.popleft()
            if not attempts:
                del self._attempts[client]


class RateLimitDependency:
    """FastAPI dependency that rejects over-limit login attempts with 429"""

    def __init__(self, limiter: InMemoryRateLimiter):
        self.limiter = limiter

    async def __call__(self, request: Request) -> None:
        from app.transport.security import get_client_ip

        allowed, retry_after = self.limiter.is_allowed(get_client_ip(request))
        if not allowed:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many login attempts",
                headers={"Retry-After": str(retry_after)},
            )
