"""logging.Handler that forwards log records to console.text."""

import asyncio
import logging
import traceback
from typing import Any, Dict, Optional, Set

from console_text.client import ConsoleTextClient
from console_text.models import Severity


def severity_for_level(levelno: int) -> Severity:
    """Map a logging level to a message severity."""
    if levelno >= logging.CRITICAL:
        return Severity.CRITICAL
    if levelno >= logging.ERROR:
        return Severity.ERROR
    if levelno >= logging.WARNING:
        return Severity.WARNING
    return Severity.INFO


class ConsoleTextHandler(logging.Handler):
    """Forward log records as alert messages.

    Records are sent from a task scheduled on the event loop running in the
    emitting thread. Records emitted outside a running loop, or before a
    client is configured, are dropped and counted in ``dropped_records``.
    Records from the client's own loggers and from httpx/httpcore are
    ignored, since every delivery logs through them and would otherwise
    trigger another delivery.

    Example:
        handler = ConsoleTextHandler(level=logging.ERROR)
        logging.getLogger("billing").addHandler(handler)
    """

    # The client itself and the HTTP stack it sends through
    IGNORED_LOGGERS = ("console_text", "httpx", "httpcore")

    def __init__(
        self,
        client: Optional[ConsoleTextClient] = None,
        level: int = logging.WARNING,
        include_traceback: bool = True,
    ):
        """Initialize the handler.

        Args:
            client: Client to send through, defaults to the process-wide client
            level: Minimum level forwarded
            include_traceback: Attach formatted exception info as metadata
        """
        super().__init__(level=level)
        self._client = client
        self.include_traceback = include_traceback
        self.dropped_records = 0
        self._pending: Set[asyncio.Task] = set()

    def _resolve_client(self) -> Optional[ConsoleTextClient]:
        if self._client is not None:
            return self._client
        from console_text import get_client

        return get_client()

    def _build_metadata(self, record: logging.LogRecord) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if self.include_traceback and record.exc_info and record.exc_info[0] is not None:
            metadata["exception"] = "".join(traceback.format_exception(*record.exc_info))
        return metadata

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.split(".")[0] in self.IGNORED_LOGGERS:
            return

        client = self._resolve_client()
        if client is None:
            self.dropped_records += 1
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.dropped_records += 1
            return

        try:
            task = loop.create_task(
                client.send(
                    record.getMessage(),
                    severity_for_level(record.levelno),
                    self._build_metadata(record),
                )
            )
        except Exception:
            self.handleError(record)
            return

        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for sends scheduled by this handler to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
