"""HTTP transport posting message envelopes to the console.text relay."""

import json
import time
from typing import Optional

import httpx

from console_text.core.config import DEFAULT_TIMEOUT
from console_text.core.http_client import auth_headers, create_http_client
from console_text.core.logging import get_logger
from console_text.exceptions import RejectedError, TransportError
from console_text.models import ApiResponse, MessageEnvelope

logger = get_logger(__name__)


class HttpTransport:
    """Posts envelopes to the relay endpoint and classifies failures.

    Raises ``TransportError`` when no usable response was obtained (retriable)
    and ``RejectedError`` when the relay answered with a failure (terminal).

    The Authorization header is built per request, so a new API key applies
    to every call that starts after ``api_key`` is reassigned.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = create_http_client(timeout=self.timeout)
        return self._client

    async def send(self, envelope: MessageEnvelope) -> ApiResponse:
        """Post one envelope.

        Args:
            envelope: Message to deliver

        Returns:
            Parsed relay response with ``success`` set

        Raises:
            TransportError: Connection failure, timeout or bodiless error response
            RejectedError: The relay refused the message
        """
        client = self._get_client()
        start = time.perf_counter()
        try:
            response = await client.post(
                self.endpoint,
                json=envelope.to_payload(),
                headers=auth_headers(self.api_key),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransportError(f"Network error: {type(e).__name__}: {e}") from e

        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.debug(
            "Relay responded",
            extra={"status_code": response.status_code, "duration_ms": duration_ms},
        )

        if not response.is_success:
            if not response.content:
                raise TransportError(
                    f"HTTP {response.status_code} without response body",
                    status_code=response.status_code,
                )
            raise RejectedError(
                error=_error_from_body(response),
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise RejectedError(
                error="Invalid JSON in relay response",
                status_code=response.status_code,
            )

        api_response = ApiResponse.from_json(data)
        if not api_response.success:
            raise RejectedError(error=api_response.error, status_code=response.status_code)
        return api_response

    async def aclose(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None


def _error_from_body(response: httpx.Response) -> str:
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text[:200]
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return str(data)[:200]
