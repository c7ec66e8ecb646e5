"""Custom exceptions for the console.text client."""

from typing import Optional


class ConsoleTextException(Exception):
    """Base class for console.text exceptions.

    ``retryable`` tells the send pipeline whether a failed delivery may be
    queued and attempted again.
    """
    retryable: bool = False

    def __init__(self, message: str = "Console.text error"):
        self.message = message
        super().__init__(message)


class ConfigurationError(ConsoleTextException):
    """Raised when the client cannot send because of its configuration.

    Examples are a disabled client or a missing API key.
    """

    def __init__(self, detail: str = "Console.text is not configured"):
        self.detail = detail
        super().__init__(detail)


class TransportError(ConsoleTextException):
    """Raised when no usable response was obtained from the relay.

    Covers connection errors, timeouts and non-2xx responses without a body.
    """
    retryable = True

    def __init__(self, detail: str = "Network error", status_code: Optional[int] = None):
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)


class RejectedError(ConsoleTextException):
    """Raised when the relay answered but refused the message.

    Retrying a rejected request (invalid key, malformed payload) would not
    succeed differently, so it is terminal.
    """

    def __init__(self, error: Optional[str] = None, status_code: Optional[int] = None):
        self.error = error
        self.status_code = status_code
        message = f"Message rejected by relay: {error or 'unknown error'}"
        if status_code is not None:
            message += f" (HTTP {status_code})"
        super().__init__(message)
