"""Per-client rate limiting.

Implements a token bucket per client IP.
"""

import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from bolt_server.middleware.base import RequestMiddleware


class RateLimitError(PermissionError):
    """Client exceeded its request budget."""

    def __init__(self, retry_after: float) -> None:
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded. Retry after {retry_after:.1f} seconds.")


@dataclass
class TokenBucket:
    """Token bucket for rate limiting."""

    capacity: int
    refill_rate: float  # tokens per second
    tokens: float = field(init=False)
    last_refill: float = field(init=False)

    def __post_init__(self) -> None:
        self.tokens = float(self.capacity)
        self.last_refill = time.monotonic()

    def consume(self, count: int = 1) -> bool:
        """Try to consume tokens. Returns True if successful."""
        now = time.monotonic()
        elapsed = now - self.last_refill

        self.tokens = min(self.capacity, self.tokens + (elapsed * self.refill_rate))
        self.last_refill = now

        if self.tokens >= count:
            self.tokens -= count
            return True
        return False

    def time_until_ready(self) -> float:
        """Return seconds until next token available."""
        if self.tokens >= 1:
            return 0.0
        return (1.0 - self.tokens) / self.refill_rate


class RateLimitMiddleware(RequestMiddleware):
    """Token bucket rate limiting per client identifier."""

    def __init__(self, per_minute: int = 60, burst: int = 10) -> None:
        """Initialize rate limiter.

        Args:
            per_minute: Maximum sustained requests per minute per client (> 0)
            burst: Maximum burst size (token bucket capacity)

        Raises:
            ValueError: If per_minute is not positive
        """
        if per_minute <= 0:
            raise ValueError(f"per_minute must be > 0, got {per_minute}")
        self.per_minute = per_minute
        self.burst = burst
        self.refill_rate = per_minute / 60.0
        self._buckets: dict[str, TokenBucket] = defaultdict(
            lambda: TokenBucket(capacity=self.burst, refill_rate=self.refill_rate)
        )

    async def process_request(self, context: dict[str, Any]) -> dict[str, Any]:
        """Consume a token for the client or reject the request."""
        bucket = self._buckets[context.get("client_ip", "unknown")]
        if not bucket.consume():
            raise RateLimitError(bucket.time_until_ready())
        return context
