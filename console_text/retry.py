"""Retry policy for queued messages.

Failed deliveries are not retried in place: they go back to the tail of the
send queue with a linear backoff timestamp, and the queue drain picks them up
again once the timestamp has passed.
"""

from dataclasses import dataclass
from typing import Tuple, Type

import httpx

from console_text.exceptions import ConsoleTextException


@dataclass
class RetryPolicy:
    """Configuration for retry behavior with linear backoff.

    Attributes:
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Delay unit in milliseconds (default: 1000)
        retryable_exceptions: Tuple of exception types that trigger a retry

    Example:
        >>> policy = RetryPolicy(max_retries=3, base_delay=1000)
        >>> policy.calculate_delay(retry_count=2)  # Returns 2000
    """

    max_retries: int = 3
    base_delay: int = 1000
    retryable_exceptions: Tuple[Type[Exception], ...] = (
        httpx.TransportError,
        httpx.TimeoutException,
    )

    def calculate_delay(self, retry_count: int) -> int:
        """Delay in milliseconds before retry number ``retry_count`` (1-indexed).

        Uses linear backoff: delay = base_delay * retry_count
        """
        return self.base_delay * retry_count

    def can_retry(self, retry_count: int) -> bool:
        """Whether a message that has been retried ``retry_count`` times may go again."""
        return retry_count < self.max_retries

    def is_retryable(self, exception: Exception) -> bool:
        """Check if an exception should trigger a retry.

        Client exceptions carry their own ``retryable`` flag; anything else is
        retryable only if it is one of ``retryable_exceptions``.
        """
        if isinstance(exception, ConsoleTextException):
            return exception.retryable
        return isinstance(exception, self.retryable_exceptions)
