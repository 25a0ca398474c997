"""Tests for the async token bucket."""

import pytest

from swipe.core.errors import RateLimitExceeded
from swipe.core.rate_limiter import TokenBucket


class TestTokenBucket:
    """Token consumption and limits."""

    async def test_consume_within_capacity(self):
        bucket = TokenBucket(rate=1.0, capacity=3)
        for _ in range(3):
            await bucket.consume()
        assert bucket.tokens < 1

    async def test_waits_for_refill(self):
        bucket = TokenBucket(rate=100.0, capacity=1, initial_tokens=0)
        await bucket.consume()
        assert bucket.tokens < 1

    async def test_request_above_capacity(self):
        bucket = TokenBucket(rate=1.0, capacity=2)
        with pytest.raises(RateLimitExceeded, match="exceed bucket capacity"):
            await bucket.consume(3)

    async def test_excessive_wait_refused(self):
        bucket = TokenBucket(rate=0.01, capacity=1, initial_tokens=0, max_wait=1.0)
        with pytest.raises(RateLimitExceeded, match="would require"):
            await bucket.consume()

    def test_rate_must_be_positive(self):
        with pytest.raises(ValueError):
            TokenBucket(rate=0)
