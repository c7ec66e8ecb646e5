"""Data models for messages, queue entries and status snapshots."""

import random
import string
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

_ID_ALPHABET = string.digits + string.ascii_lowercase


class Severity(str, Enum):
    """Severity levels accepted by the relay."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


# Severities that are delivered even when the rate limiter denies admission
BYPASS_SEVERITIES = frozenset((Severity.CRITICAL.value, Severity.ERROR.value))


def severity_value(severity: Any) -> str:
    """Normalize a Severity member or plain string to its wire value."""
    if isinstance(severity, Severity):
        return severity.value
    return str(severity) if severity else Severity.INFO.value


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_message_id(timestamp_ms: Optional[int] = None) -> str:
    """Generate a queue id of the form ``<epoch ms>-<9 base36 chars>``."""
    if timestamp_ms is None:
        timestamp_ms = now_ms()
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{timestamp_ms}-{suffix}"


class DeliveryOutcome(Enum):
    """Result of one delivery attempt."""
    DELIVERED = "delivered"
    NETWORK_FAILURE = "network_failure"  # Retriable
    REJECTED = "rejected"                # Terminal


@dataclass(frozen=True)
class MessageEnvelope:
    """One alert message plus its context tags.

    Immutable once created; ``timestamp`` is epoch milliseconds.
    """
    message: str
    severity: str = Severity.INFO.value
    metadata: Optional[Dict[str, Any]] = None
    timestamp: int = field(default_factory=now_ms)
    project_id: Optional[str] = None
    environment: Optional[str] = None

    @classmethod
    def create(
        cls,
        message: str,
        severity: Any = Severity.INFO,
        metadata: Optional[Mapping[str, Any]] = None,
        project_id: Optional[str] = None,
        environment: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> "MessageEnvelope":
        if not message:
            raise ValueError("message must be a non-empty string")
        return cls(
            message=message,
            severity=severity_value(severity),
            metadata=dict(metadata) if metadata is not None else None,
            timestamp=timestamp if timestamp is not None else now_ms(),
            project_id=project_id,
            environment=environment,
        )

    def to_payload(self) -> Dict[str, Any]:
        """Return the JSON body posted to the relay."""
        payload: Dict[str, Any] = {
            "message": self.message,
            "severity": self.severity,
            "timestamp": self.timestamp,
            "projectId": self.project_id,
            "environment": self.environment,
        }
        if self.metadata is not None:
            payload["metadata"] = self.metadata
        return payload


@dataclass
class QueuedMessage:
    """An envelope resident in the send queue with its retry bookkeeping."""
    envelope: MessageEnvelope
    id: str
    retry_count: int = 0
    scheduled_at: int = 0  # Epoch ms before which no retry is attempted

    @property
    def severity(self) -> str:
        return self.envelope.severity

    @property
    def message(self) -> str:
        return self.envelope.message


@dataclass
class RateLimitInfo:
    remaining: int
    reset_time: int


@dataclass
class ApiResponse:
    """Parsed relay response body."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    rate_limit_info: Optional[RateLimitInfo] = None

    @classmethod
    def from_json(cls, data: Any) -> "ApiResponse":
        """Build a response from a decoded JSON body.

        Bodies that are not objects are treated as unsuccessful.
        """
        if not isinstance(data, dict):
            return cls(success=False, error="Unexpected response body")

        rate_limit_info = None
        raw_info = data.get("rateLimitInfo")
        if isinstance(raw_info, dict):
            rate_limit_info = RateLimitInfo(
                remaining=int(raw_info.get("remaining", 0)),
                reset_time=int(raw_info.get("resetTime", 0)),
            )

        return cls(
            success=bool(data.get("success", False)),
            message_id=data.get("messageId"),
            error=data.get("error"),
            rate_limit_info=rate_limit_info,
        )


@dataclass(frozen=True)
class RateLimitStatus:
    available_tokens: int
    capacity: float
    time_until_next_token: int  # Milliseconds, -1 when the bucket never refills

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ClientStatus:
    queue_length: int
    rate_limit_status: RateLimitStatus
    is_enabled: bool
    environment: str
    project_id: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
