"""HTTP client construction for the relay transport."""

from typing import Dict

import httpx

from console_text.core.config import DEFAULT_TIMEOUT

CLIENT_VERSION = "0.1.0"
USER_AGENT = f"console-text-python/{CLIENT_VERSION}"


def auth_headers(api_key: str) -> Dict[str, str]:
    """Build the request headers expected by the relay endpoint."""
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }


def create_http_client(**kwargs) -> httpx.AsyncClient:
    """Create a new HTTP client with default settings.

    The returned client should be closed when done:
        async with create_http_client() as client:
            ...

    Args:
        **kwargs: Override default settings. Can include:
            - timeout: Single timeout value in seconds (default 10)
            - max_connections: Maximum connections
            - max_keepalive_connections: Maximum keepalive connections
            - keepalive_expiry: Keepalive expiration time
            - transport: Custom httpx transport (useful in tests)

    Returns:
        A new httpx.AsyncClient instance.
    """
    config = {
        "timeout": httpx.Timeout(kwargs.get("timeout", DEFAULT_TIMEOUT)),
        "limits": httpx.Limits(
            max_connections=kwargs.get("max_connections", 10),
            max_keepalive_connections=kwargs.get("max_keepalive_connections", 5),
            keepalive_expiry=kwargs.get("keepalive_expiry", 30.0),
        ),
        "headers": {"User-Agent": USER_AGENT},
    }
    if kwargs.get("transport") is not None:
        config["transport"] = kwargs["transport"]
    return httpx.AsyncClient(**config)
