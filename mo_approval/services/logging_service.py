"""Structured logging configuration with redaction support.

Log lines can carry SAP session material (CSRF tokens, session cookies,
basic-auth headers) and user credentials. Both sensitive keys and
credential-looking values are masked before rendering.
"""

import logging
import sys
from typing import Any, Dict

import structlog

SERVICE_NAME = "mo-approval-api"

# Substrings of event keys whose values are never logged
SENSITIVE_KEYS = (
    "authorization",
    "secret",
    "password",
    "csrf",
    "cookie",
    "session_token",
)

# Header-style credentials that can turn up inside otherwise harmless values
CREDENTIAL_PREFIXES = ("basic ", "bearer ")

# Third-party loggers that would otherwise echo full upstream URLs at INFO
NOISY_LOGGERS = ("httpx", "httpcore")

REDACTED = "REDACTED"


def redact_sensitive(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Redact sensitive information from log entries.

    Redacts any field whose name contains one of ``SENSITIVE_KEYS`` (case
    insensitive) and any string value that starts with a Basic or Bearer
    credential.
    """
    for key, value in list(event_dict.items()):
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
            event_dict[key] = REDACTED
        elif isinstance(value, str) and value.lower().startswith(CREDENTIAL_PREFIXES):
            event_dict[key] = REDACTED

    return event_dict


def add_service_name(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for JSON output with correlation ID support.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_service_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_sensitive,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger, optionally bound to a component name."""
    logger = structlog.get_logger()
    return logger.bind(logger_name=name) if name else logger
