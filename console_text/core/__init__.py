"""Core utilities for the console.text client."""

from console_text.core.config import ClientConfig, Settings, settings
from console_text.core.http_client import create_http_client
from console_text.core.logging import get_logger, setup_logging

__all__ = [
    "ClientConfig",
    "Settings",
    "settings",
    "create_http_client",
    "get_logger",
    "setup_logging",
]
