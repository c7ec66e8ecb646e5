"""Integrations that feed application events into console.text."""

from console_text.integrations.logging_handler import ConsoleTextHandler, severity_for_level
from console_text.integrations.middleware import ConsoleTextMiddleware

__all__ = [
    "ConsoleTextHandler",
    "ConsoleTextMiddleware",
    "severity_for_level",
]
