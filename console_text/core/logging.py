"""Logging setup for the console.text client.

The client logs through the ``console_text`` logger hierarchy and never
configures handlers on import. Applications that want the client's own
output formatted call ``setup_logging()``, which reads ``log_level`` and
``log_format`` (``text``, ``structured`` or ``json``) from settings.
"""

import json
import logging
import logging.config
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from console_text.core.config import settings

PACKAGE_LOGGER = "console_text"

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
STRUCTURED_FORMAT = (
    TEXT_FORMAT
    + " - project_id=%(project_id)s - environment=%(environment)s"
    + " - message_id=%(message_id)s - severity=%(severity)s"
)

# Attributes every LogRecord carries, plus the keys JSONFormatter writes itself
_RECORD_ATTRIBUTES = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


class JSONFormatter(logging.Formatter):
    """Render records as one JSON object per line.

    Known message fields (``CONTEXT_FIELDS``) are written at the top level
    when set. Any other attribute passed through ``extra`` ends up under
    ``"extra"``.
    """

    CONTEXT_FIELDS = (
        "project_id",
        "environment",
        "message_id",
        "severity",
        "retry_count",
        "queue_length",
        "status_code",
        "duration_ms",
    )

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }
        entry.update(self._context(record))

        extra = self._extra(record)
        if extra:
            entry["extra"] = extra

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)

    def _context(self, record: logging.LogRecord) -> Dict[str, Any]:
        values = ((name, getattr(record, name, None)) for name in self.CONTEXT_FIELDS)
        return {name: value for name, value in values if value is not None}

    def _extra(self, record: logging.LogRecord) -> Dict[str, Any]:
        return {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and key not in self.CONTEXT_FIELDS
        }


class ContextFilter(logging.Filter):
    """Give every record the message context attributes.

    The ``structured`` format string references them, so records logged
    without ``extra`` get ``None`` instead of raising a formatting error.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for name in JSONFormatter.CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, None)
        return True


def get_logging_config(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a ``dictConfig`` dictionary for the ``console_text`` loggers.

    Args:
        level: Log level, defaults to ``settings.log_level``
        log_format: ``text``, ``structured`` or ``json``, defaults to
            ``settings.log_format``
    """
    level = (level or settings.log_level).upper()
    log_format = (log_format or settings.log_format).lower()

    formatters: Dict[str, Dict[str, Any]] = {
        "standard": {"format": TEXT_FORMAT},
        "structured": {"format": STRUCTURED_FORMAT},
    }
    if log_format == "json":
        formatters["json"] = {"()": JSONFormatter}
        formatter = "json"
    elif log_format == "structured":
        formatter = "structured"
    else:
        formatter = "standard"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": {"context": {"()": ContextFilter}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": formatter,
                "filters": ["context"],
                "stream": sys.stderr,
            },
        },
        "loggers": {
            PACKAGE_LOGGER: {
                "level": level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Install handlers for the client's loggers.

    Only the ``console_text`` hierarchy is configured; the root logger and
    the application's own loggers are left alone.
    """
    logging.config.dictConfig(get_logging_config(level, log_format))

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    return logging.getLogger(name)


def get_log_context(
    project_id: Optional[str] = None,
    environment: Optional[str] = None,
    message_id: Optional[str] = None,
    severity: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build an ``extra`` mapping, leaving out unset fields.

    Example:
        logger.debug(
            "Message queued",
            extra=get_log_context(message_id=item.id, queue_length=3),
        )
    """
    context = {
        "project_id": project_id,
        "environment": environment,
        "message_id": message_id,
        "severity": severity,
        **extra,
    }
    return {key: value for key, value in context.items() if value is not None}
