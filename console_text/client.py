"""Send pipeline: rate-limited delivery with a FIFO retry queue.

``ConsoleTextClient`` decides for every outbound message whether to send it
now, send it now despite the rate limiter (critical and error messages), or
queue it. A background task drains the queue every ``queue_interval``
milliseconds, one cycle at a time, strictly in order.
"""

import asyncio
import time
from collections import deque
from typing import Any, Callable, Deque, List, Mapping, Optional

import httpx

from console_text.core.config import ClientConfig
from console_text.core.logging import get_log_context, get_logger
from console_text.exceptions import ConsoleTextException
from console_text.models import (
    BYPASS_SEVERITIES,
    ClientStatus,
    DeliveryOutcome,
    MessageEnvelope,
    QueuedMessage,
    Severity,
    generate_message_id,
    severity_value,
)
from console_text.rate_limiter import TokenBucketRateLimiter
from console_text.retry import RetryPolicy
from console_text.transport import HttpTransport

logger = get_logger(__name__)


class ConsoleTextClient:
    """Client that relays alert messages to the console.text endpoint.

    ``send`` never raises: every outcome is a boolean. ``True`` means the
    message was delivered or accepted into the queue, not that it reached
    Telegram.

    Example:
        async with ConsoleTextClient(api_key="ct_...", project_id="billing") as client:
            await client.critical("Payment provider unreachable", {"order_id": 42})
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        transport: Any = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], float]] = None,
        autostart: bool = True,
        **fields: Any,
    ):
        """Initialize the client.

        Args:
            config: Client configuration; built from the environment when omitted
            transport: Object with ``async send(envelope)``; defaults to HttpTransport
            http_client: httpx client for the default transport
            clock: Callable returning the current time in seconds. Used for
                message timestamps (default time.time) and, when given, also
                for the rate limiter (default time.monotonic)
            autostart: Start the queue drain task on first send
            **fields: Config fields overriding ``config`` or the environment
        """
        if config is None:
            config = ClientConfig.from_settings(**fields)
        elif fields:
            config = config.merged(**fields)
        self._config = config

        self._clock = clock or time.time
        self._autostart = autostart

        self._rate_limiter = TokenBucketRateLimiter(
            capacity=config.rate_limit_per_minute,
            refill_rate=config.rate_limit_per_minute / 60,
            clock=clock or time.monotonic,
        )
        self._retry_policy = RetryPolicy(
            max_retries=config.retry_attempts,
            base_delay=config.retry_delay,
        )
        self._transport = transport or HttpTransport(
            endpoint=config.api_endpoint,
            api_key=config.api_key,
            timeout=config.timeout,
            http_client=http_client,
        )

        self._queue: Deque[QueuedMessage] = deque()
        self._processing = False

        # Background drain task
        self._drain_task: Optional[asyncio.Task] = None
        self._shutdown_event = asyncio.Event()
        # Set to restart the drain wait, e.g. after queue_interval changes
        self._wakeup = asyncio.Event()
        self._started = False

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def rate_limiter(self) -> TokenBucketRateLimiter:
        return self._rate_limiter

    @property
    def queued_messages(self) -> List[QueuedMessage]:
        """Snapshot of the queue, head first."""
        return list(self._queue)

    @property
    def is_running(self) -> bool:
        return self._started

    # Lifecycle

    def start(self) -> None:
        """Start the background queue drain task.

        Must be called from a running event loop.
        """
        if not self._started:
            self._shutdown_event.clear()
            self._wakeup.clear()
            self._drain_task = asyncio.create_task(self._drain_loop())
            self._started = True
            logger.debug("ConsoleTextClient queue processor started")

    async def shutdown(self, flush: bool = False) -> None:
        """Stop the drain task and release the HTTP client.

        Args:
            flush: Run one last drain cycle before closing. The cycle still
                respects the rate limiter, so messages may remain queued.
        """
        self._shutdown_event.set()
        self._wakeup.set()

        if self._drain_task is not None:
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
            self._drain_task = None

        if flush:
            await self.process_queue()

        close = getattr(self._transport, "aclose", None)
        if close is not None:
            await close()

        self._started = False
        logger.debug(
            "ConsoleTextClient shut down",
            extra={"queue_length": len(self._queue)},
        )

    async def __aenter__(self) -> "ConsoleTextClient":
        if self._autostart:
            self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown(flush=True)

    # Sending

    async def send(
        self,
        message: str,
        severity: Any = Severity.INFO,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Send a message, bypass the limiter, or queue it.

        Args:
            message: Message text, must be non-empty
            severity: info, warning, error or critical
            metadata: Arbitrary key/value pairs forwarded to the relay

        Returns:
            True if delivered or queued, False if disabled, misconfigured,
            rejected, or on a network failure of an immediate delivery
        """
        if not self._config.enabled:
            self._debug("Console.text is disabled")
            return False
        if not self._config.api_key:
            logger.warning("Console.text API key is not configured, message not sent")
            return False
        if not message:
            self._debug("Refusing to send an empty message")
            return False

        if self._autostart and not self._started:
            self.start()

        severity = severity_value(severity)
        envelope = MessageEnvelope.create(
            message,
            severity=severity,
            metadata=metadata,
            project_id=self._config.project_id,
            environment=self._config.environment,
            timestamp=self._now_ms(),
        )

        cost = TokenBucketRateLimiter.get_token_cost_by_severity(severity)

        if not self._rate_limiter.can_send(cost):
            self._debug(f"Rate limit exceeded for {severity} message", severity=severity)
            if severity in BYPASS_SEVERITIES:
                return await self._send_immediately(envelope)
            return self._enqueue(envelope)

        if self._rate_limiter.consume(cost):
            return await self._send_immediately(envelope)

        return self._enqueue(envelope)

    async def critical(self, message: str, metadata: Optional[Mapping[str, Any]] = None) -> bool:
        return await self.send(message, Severity.CRITICAL, metadata)

    async def error(self, message: str, metadata: Optional[Mapping[str, Any]] = None) -> bool:
        return await self.send(message, Severity.ERROR, metadata)

    async def warning(self, message: str, metadata: Optional[Mapping[str, Any]] = None) -> bool:
        return await self.send(message, Severity.WARNING, metadata)

    async def info(self, message: str, metadata: Optional[Mapping[str, Any]] = None) -> bool:
        return await self.send(message, Severity.INFO, metadata)

    async def _send_immediately(self, envelope: MessageEnvelope) -> bool:
        outcome = await self._deliver(envelope)
        if outcome is DeliveryOutcome.NETWORK_FAILURE:
            self._enqueue(envelope)
        return outcome is DeliveryOutcome.DELIVERED

    async def _deliver(self, envelope: MessageEnvelope) -> DeliveryOutcome:
        """Make one transport call and classify the result."""
        try:
            response = await self._transport.send(envelope)
        except ConsoleTextException as e:
            self._debug(f"Failed to send message: {e}", severity=envelope.severity)
            if self._retry_policy.is_retryable(e):
                return DeliveryOutcome.NETWORK_FAILURE
            return DeliveryOutcome.REJECTED
        except Exception as e:
            if self._retry_policy.is_retryable(e):
                self._debug(f"Failed to send message: {type(e).__name__}: {e}")
                return DeliveryOutcome.NETWORK_FAILURE
            logger.warning(
                f"Unexpected transport error: {type(e).__name__}: {e}",
                exc_info=True,
            )
            return DeliveryOutcome.REJECTED

        if not getattr(response, "success", True):
            self._debug(
                f"Message rejected: {getattr(response, 'error', None)}",
                severity=envelope.severity,
            )
            return DeliveryOutcome.REJECTED

        self._debug(
            f"Message sent successfully: {getattr(response, 'message_id', None)}",
            severity=envelope.severity,
        )
        return DeliveryOutcome.DELIVERED

    # Queue

    def _enqueue(self, envelope: MessageEnvelope) -> bool:
        now = self._now_ms()
        item = QueuedMessage(
            envelope=envelope,
            id=generate_message_id(now),
            retry_count=0,
            scheduled_at=now,
        )
        accepted = self._push(item)
        if accepted:
            self._debug(
                f"Message queued: {item.id}",
                message_id=item.id,
                queue_length=len(self._queue),
            )
        return accepted

    def _push(self, item: QueuedMessage) -> bool:
        """Append to the tail, applying the overflow policy when capped."""
        max_size = self._config.max_queue_size
        if max_size is not None and len(self._queue) >= max_size:
            if self._config.queue_overflow == "drop_newest":
                logger.warning(
                    f"Send queue full ({max_size}), dropping message {item.id}",
                    extra=get_log_context(message_id=item.id, severity=item.severity),
                )
                return False
            dropped = self._queue.popleft()
            logger.warning(
                f"Send queue full ({max_size}), dropping oldest message {dropped.id}",
                extra=get_log_context(message_id=dropped.id, severity=dropped.severity),
            )
        self._queue.append(item)
        return True

    async def process_queue(self) -> int:
        """Run one drain cycle.

        Processes the queue head first and stops at the first message that is
        not yet due or that the limiter cannot admit; later messages never
        overtake it.

        Returns:
            Number of delivery attempts made in this cycle
        """
        if self._processing or not self._queue:
            return 0

        self._processing = True
        attempts = 0
        try:
            while self._queue:
                head = self._queue[0]

                if self._config.enforce_backoff and head.scheduled_at > self._now_ms():
                    break

                cost = TokenBucketRateLimiter.get_token_cost_by_severity(head.severity)
                if not self._rate_limiter.can_send(cost):
                    break

                self._queue.popleft()
                if not self._rate_limiter.consume(cost):
                    self._queue.appendleft(head)
                    break

                attempts += 1
                try:
                    outcome = await self._deliver(head.envelope)
                except asyncio.CancelledError:
                    # Cancelled mid-delivery (shutdown): keep the message at the head
                    self._queue.appendleft(head)
                    raise

                if outcome is DeliveryOutcome.DELIVERED:
                    continue
                if outcome is DeliveryOutcome.REJECTED:
                    self._debug(
                        f"Dropping rejected message {head.id}",
                        message_id=head.id,
                        retry_count=head.retry_count,
                    )
                    continue

                if self._retry_policy.can_retry(head.retry_count):
                    head.retry_count += 1
                    head.scheduled_at = self._now_ms() + self._retry_policy.calculate_delay(
                        head.retry_count
                    )
                    self._push(head)
                    self._debug(
                        f"Message {head.id} requeued (retry {head.retry_count}/"
                        f"{self._retry_policy.max_retries})",
                        message_id=head.id,
                        retry_count=head.retry_count,
                    )
                else:
                    logger.warning(
                        f"Dropping message {head.id} after {head.retry_count} retries",
                        extra=get_log_context(
                            message_id=head.id,
                            severity=head.severity,
                            retry_count=head.retry_count,
                        ),
                    )
        finally:
            self._processing = False

        return attempts

    async def _drain_loop(self) -> None:
        """Background task that periodically drains the queue."""
        while not self._shutdown_event.is_set():
            # Read on every pass so update_config(queue_interval=...) applies
            interval = self._config.queue_interval / 1000
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

            if self._wakeup.is_set():
                self._wakeup.clear()
                continue

            try:
                await self.process_queue()
            except Exception:
                logger.exception("Queue processing cycle failed")

    def clear_queue(self) -> None:
        self._queue.clear()
        self._debug("Message queue cleared")

    # Status and configuration

    def get_status(self) -> ClientStatus:
        return ClientStatus(
            queue_length=len(self._queue),
            rate_limit_status=self._rate_limiter.get_status(),
            is_enabled=self._config.enabled,
            environment=self._config.environment,
            project_id=self._config.project_id,
        )

    def update_config(self, **changes: Any) -> None:
        """Merge ``changes`` into the live configuration.

        A new ``api_key`` or ``api_endpoint`` applies to every transport call
        that starts afterwards; calls already in flight are unaffected. A new
        ``queue_interval`` restarts the drain task's current wait. The rate
        limiter keeps its original capacity.

        Raises:
            pydantic.ValidationError: If a value is invalid
        """
        self._config = self._config.merged(**changes)

        if isinstance(self._transport, HttpTransport):
            self._transport.api_key = self._config.api_key
            self._transport.endpoint = self._config.api_endpoint
            self._transport.timeout = self._config.timeout

        self._retry_policy = RetryPolicy(
            max_retries=self._config.retry_attempts,
            base_delay=self._config.retry_delay,
        )
        if "queue_interval" in changes and self._started:
            self._wakeup.set()
        self._debug(f"Configuration updated: {sorted(changes)}")

    # Helpers

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _debug(self, message: str, **context: Any) -> None:
        extra = get_log_context(
            project_id=self._config.project_id,
            environment=self._config.environment,
            **context,
        )
        if self._config.debug:
            logger.info(f"[Console.text] {message}", extra=extra)
        else:
            logger.debug(message, extra=extra)
