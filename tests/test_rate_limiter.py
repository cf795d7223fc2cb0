# tests/test_rate_limiter.py
"""Tests for app/infra/rate_limiter.py - login sliding window."""
from __future__ import annotations

from app.infra.rate_limiter import InMemoryRateLimiter


class TestInMemoryRateLimiter:
    def test_blocks_after_limit(self):
        limiter = InMemoryRateLimiter(max_requests=2, window_seconds=60)
        assert limiter.is_allowed("10.0.0.1", now=100.0) == (True, None)
        assert limiter.is_allowed("10.0.0.1", now=101.0) == (True, None)

        allowed, retry_after = limiter.is_allowed("10.0.0.1", now=110.0)
        assert allowed is False
        assert retry_after == 51

    def test_clients_are_independent(self):
        limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60)
        assert limiter.is_allowed("10.0.0.1", now=100.0)[0]
        assert limiter.is_allowed("10.0.0.2", now=100.0)[0]
        assert not limiter.is_allowed("10.0.0.1", now=100.0)[0]

    def test_window_slides(self):
        limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60)
        assert limiter.is_allowed("10.0.0.1", now=100.0)[0]
        assert not limiter.is_allowed("10.0.0.1", now=159.0)[0]
        assert limiter.is_allowed("10.0.0.1", now=160.5)[0]

    def test_idle_clients_are_forgotten(self):
        limiter = InMemoryRateLimiter(max_requests=5, window_seconds=60)
        for i in range(3):
            limiter.is_allowed(f"10.0.0.{i}", now=100.0)
        assert len(limiter) == 3

        limiter.is_allowed("10.0.0.9", now=200.0)
        assert len(limiter) == 1
