"""console.text: relay application alerts to Telegram.

Module-level functions wrap one process-wide client. Lifecycle:
``configure()`` once before use, then ``text()``/``critical()``/... from
coroutines, and ``await shutdown()`` on exit. Nothing is created implicitly;
calls made before ``configure()`` return False and log a warning.

    import console_text

    console_text.configure(api_key="ct_...", project_id="my-app")
    await console_text.critical("Database unreachable", {"host": "db-1"})
    await console_text.shutdown()
"""

from typing import Any, Mapping, Optional

from console_text.client import ConsoleTextClient
from console_text.core.config import ClientConfig, Settings
from console_text.core.logging import get_logger
from console_text.exceptions import (
    ConfigurationError,
    ConsoleTextException,
    RejectedError,
    TransportError,
)
from console_text.models import (
    ApiResponse,
    ClientStatus,
    MessageEnvelope,
    QueuedMessage,
    RateLimitStatus,
    Severity,
)
from console_text.rate_limiter import TokenBucketRateLimiter

__version__ = "0.1.0"

logger = get_logger(__name__)

_global_client: Optional[ConsoleTextClient] = None


def configure(config: Optional[ClientConfig] = None, **fields: Any) -> ConsoleTextClient:
    """Create the process-wide client.

    Raises:
        ConfigurationError: If a client is already configured; call
            ``shutdown()`` first to replace it.
    """
    global _global_client
    if _global_client is not None:
        raise ConfigurationError(
            "Console.text is already configured. Call shutdown() before configuring again."
        )
    _global_client = ConsoleTextClient(config, **fields)
    return _global_client


def get_client() -> Optional[ConsoleTextClient]:
    return _global_client


async def text(
    message: str,
    severity: Any = Severity.INFO,
    metadata: Optional[Mapping[str, Any]] = None,
) -> bool:
    """Send a message through the process-wide client."""
    if _global_client is None:
        logger.warning("Console.text not configured. Call configure() first.")
        return False
    return await _global_client.send(message, severity, metadata)


async def critical(message: str, metadata: Optional[Mapping[str, Any]] = None) -> bool:
    return await text(message, Severity.CRITICAL, metadata)


async def error(message: str, metadata: Optional[Mapping[str, Any]] = None) -> bool:
    return await text(message, Severity.ERROR, metadata)


async def warning(message: str, metadata: Optional[Mapping[str, Any]] = None) -> bool:
    return await text(message, Severity.WARNING, metadata)


async def info(message: str, metadata: Optional[Mapping[str, Any]] = None) -> bool:
    return await text(message, Severity.INFO, metadata)


def get_status() -> Optional[ClientStatus]:
    if _global_client is None:
        return None
    return _global_client.get_status()


def update_config(**changes: Any) -> None:
    if _global_client is None:
        logger.warning("Console.text not configured. Call configure() first.")
        return
    _global_client.update_config(**changes)


def clear_queue() -> None:
    if _global_client is not None:
        _global_client.clear_queue()


async def shutdown(flush: bool = False) -> None:
    """Tear down the process-wide client so ``configure()`` can run again."""
    global _global_client
    client, _global_client = _global_client, None
    if client is not None:
        await client.shutdown(flush=flush)


__all__ = [
    "ApiResponse",
    "ClientConfig",
    "ClientStatus",
    "ConfigurationError",
    "ConsoleTextClient",
    "ConsoleTextException",
    "MessageEnvelope",
    "QueuedMessage",
    "RateLimitStatus",
    "RejectedError",
    "Settings",
    "Severity",
    "TokenBucketRateLimiter",
    "TransportError",
    "clear_queue",
    "configure",
    "critical",
    "error",
    "get_client",
    "get_status",
    "info",
    "shutdown",
    "text",
    "update_config",
    "warning",
]
