"""Starlette/FastAPI middleware that reports failing and slow requests.

Alerts raised per request:
1. ``info`` for each incoming request when ``log_requests`` is enabled
2. ``warning`` when the response took longer than ``slow_request_threshold_ms``
3. ``error`` for 5xx responses
4. ``critical`` for unhandled exceptions, which are re-raised
"""

import asyncio
import time
import traceback
from typing import Any, Awaitable, Dict, Optional, Set

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from console_text.client import ConsoleTextClient


class ConsoleTextMiddleware(BaseHTTPMiddleware):
    """Send console.text alerts for requests handled by the application."""

    def __init__(
        self,
        app,
        client: Optional[ConsoleTextClient] = None,
        slow_request_threshold_ms: int = 5000,
        log_requests: bool = False,
        await_alerts: bool = False,
    ):
        """Initialize the middleware.

        Args:
            app: ASGI application
            client: Client to send through, defaults to the process-wide client
            slow_request_threshold_ms: Responses slower than this raise a warning
            log_requests: Send an info message for every request
            await_alerts: Wait for each alert inside the request instead of
                scheduling it as a background task
        """
        super().__init__(app)
        self._client = client
        self.slow_request_threshold_ms = slow_request_threshold_ms
        self.log_requests = log_requests
        self.await_alerts = await_alerts
        self._pending: Set[asyncio.Task] = set()

    def _resolve_client(self) -> Optional[ConsoleTextClient]:
        if self._client is not None:
            return self._client
        from console_text import get_client

        return get_client()

    async def _alert(self, send: Awaitable[bool]) -> None:
        if self.await_alerts:
            await send
            return
        task = asyncio.ensure_future(send)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        client = self._resolve_client()
        if client is None:
            return await call_next(request)

        start = time.perf_counter()
        request_info: Dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
        }

        if self.log_requests:
            await self._alert(client.info(
                f"{request.method} {request.url.path}",
                {
                    **request_info,
                    "user_agent": request.headers.get("user-agent"),
                    "client": request.client.host if request.client else None,
                },
            ))

        try:
            response = await call_next(request)
        except Exception as e:
            await self._alert(client.critical(
                f"Unhandled error: {e}",
                {
                    **request_info,
                    "error": traceback.format_exc(),
                    "query": dict(request.query_params),
                },
            ))
            raise

        duration_ms = int((time.perf_counter() - start) * 1000)
        response_info = {
            **request_info,
            "status_code": response.status_code,
            "response_time_ms": duration_ms,
        }

        if duration_ms > self.slow_request_threshold_ms:
            await self._alert(client.warning(f"Slow response: {duration_ms}ms", response_info))

        if response.status_code >= 500:
            await self._alert(client.error(f"Server error: {response.status_code}", response_info))

        return response
