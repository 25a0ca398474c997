"""Async token bucket pacing provider calls.

Provider calls made by the orchestrator (trash, filters, bulk modify,
search) are issued one after another and each one first takes a token from
the bucket, so a burst of swipes or a domain nuke never exceeds the mail
API's request rate.

Usage:
    bucket = TokenBucket(rate=10.0, capacity=10)
    await bucket.consume()  # waits if the bucket is empty
"""

import asyncio
import time

from swipe.core.errors import RateLimitExceeded
from swipe.core.logging import get_logger

logger = get_logger(__name__)

# Longest wait the bucket accepts before refusing with RateLimitExceeded
MAX_WAIT_SECONDS = 20.0


class TokenBucket:
    """Token bucket rate limiter.

    Tokens are added at a fixed rate up to ``capacity``; each request consumes
    one. When the bucket is empty the caller sleeps until a token is
    available.

    Attributes:
        rate: Token refill rate per second
        capacity: Maximum number of tokens in the bucket
        tokens: Tokens currently available
    """

    def __init__(
        self,
        rate: float = 10.0,
        capacity: int = 10,
        initial_tokens: float | None = None,
        max_wait: float = MAX_WAIT_SECONDS,
    ):
        if rate <= 0:
            raise ValueError(f"Token bucket rate must be positive, got {rate}")
        self.rate = rate
        self.capacity = capacity
        self.tokens: float = capacity if initial_tokens is None else initial_tokens
        self.max_wait = max_wait
        self.last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    async def consume(self, tokens: int = 1) -> None:
        """Consume tokens, waiting for a refill if needed.

        Args:
            tokens: Number of tokens to consume

        Raises:
            RateLimitExceeded: If more tokens than capacity are requested or
                the required wait exceeds ``max_wait``
        """
        if tokens > self.capacity:
            raise RateLimitExceeded(
                f"Requested tokens ({tokens}) exceed bucket capacity ({self.capacity}). "
                "Raise actions.provider_capacity in config.yaml."
            )

        # The lock is held across the sleep so concurrent callers queue in order
        async with self._lock:
            self._refill()
            if self.tokens < tokens:
                wait_time = (tokens - self.tokens) / self.rate
                if wait_time > self.max_wait:
                    logger.warning(
                        "rate_limit_wait_excessive",
                        wait_time=wait_time,
                        tokens_needed=tokens - self.tokens,
                    )
                    raise RateLimitExceeded(
                        f"Rate limit exceeded, would require {wait_time:.2f}s wait"
                    )
                logger.debug("rate_limit_waiting", wait_time=wait_time)
                await asyncio.sleep(wait_time)
                self._refill()
            self.tokens = max(0.0, self.tokens - tokens)

    def _refill(self) -> None:
        """Refill tokens based on elapsed time."""
        now = time.monotonic()
        self.tokens = min(self.capacity, self.tokens + (now - self.last_refill) * self.rate)
        self.last_refill = now
