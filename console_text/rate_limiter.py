"""Token bucket rate limiter for outbound messages.

The bucket refills lazily: every public operation first credits the tokens
earned since the previous operation, so no background timer is needed.
"""

import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from console_text.models import RateLimitStatus, Severity, severity_value

# Token cost per severity; cheaper messages keep burst capacity for urgent alerts
SEVERITY_TOKEN_COST = {
    Severity.CRITICAL.value: 1,
    Severity.ERROR.value: 1,
    Severity.WARNING.value: 2,
    Severity.INFO.value: 3,
}
DEFAULT_TOKEN_COST = 1


@dataclass
class TokenBucket:
    """Token bucket state for token bucket algorithm."""
    tokens: float
    capacity: float
    refill_rate: float  # Tokens added per second
    last_refill: float = field(default_factory=time.monotonic)


class TokenBucketRateLimiter:
    """Admission control for a stream of sends.

    Insufficient tokens is reported as a boolean, never as an exception.

    Example:
        >>> limiter = TokenBucketRateLimiter(capacity=60)
        >>> if limiter.consume(TokenBucketRateLimiter.get_token_cost_by_severity("info")):
        ...     ...
    """

    def __init__(
        self,
        capacity: float = 60,
        refill_rate: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize the limiter with a full bucket.

        Args:
            capacity: Maximum tokens (burst size)
            refill_rate: Tokens per second, defaults to capacity / 60
            clock: Callable returning the current time in seconds
        """
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        if refill_rate is None:
            refill_rate = capacity / 60
        if refill_rate < 0:
            raise ValueError("refill_rate must not be negative")

        self._clock = clock or time.monotonic
        self._state = TokenBucket(
            tokens=float(capacity),
            capacity=float(capacity),
            refill_rate=float(refill_rate),
            last_refill=self._clock(),
        )

    @property
    def state(self) -> TokenBucket:
        return self._state

    @property
    def capacity(self) -> float:
        return self._state.capacity

    @property
    def refill_rate(self) -> float:
        return self._state.refill_rate

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._state.last_refill
        if elapsed > 0:
            tokens_to_add = elapsed * self._state.refill_rate
            self._state.tokens = min(self._state.capacity, self._state.tokens + tokens_to_add)
            self._state.last_refill = now

    def can_send(self, cost: float = 1) -> bool:
        """Return whether ``cost`` tokens are available, without consuming them."""
        self._refill()
        return self._state.tokens >= cost

    def consume(self, cost: float = 1) -> bool:
        """Take ``cost`` tokens if available.

        Returns:
            True if the tokens were taken, False (and no change) otherwise
        """
        if not self.can_send(cost):
            return False
        self._state.tokens -= cost
        return True

    def time_until_next_token(self) -> int:
        """Milliseconds until one token is available.

        Approximation: the full per-token interval is returned, ignoring any
        fractional progress toward the next token. Returns -1 when the bucket
        is empty and never refills.
        """
        self._refill()
        if self._state.tokens >= 1:
            return 0
        if self._state.refill_rate <= 0:
            return -1
        return math.ceil(1000 / self._state.refill_rate)

    def get_status(self) -> RateLimitStatus:
        self._refill()
        return RateLimitStatus(
            available_tokens=math.floor(self._state.tokens),
            capacity=self._state.capacity,
            time_until_next_token=self.time_until_next_token(),
        )

    @staticmethod
    def get_token_cost_by_severity(severity: Any) -> int:
        """Token cost for a severity; unknown severities cost 1."""
        return SEVERITY_TOKEN_COST.get(severity_value(severity), DEFAULT_TOKEN_COST)
