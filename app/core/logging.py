"""
Structured logging for CoolCare.

Every log line passes through ``redact_sensitive_fields`` first: security
events are mirrored into the log stream and their payloads may carry
credentials or bearer tokens.
"""
import logging
import sys
from typing import Any, Dict, MutableMapping

import structlog

from app.core.config import settings

REDACTED = "[REDACTED]"
SENSITIVE_KEYS = frozenset({
    "password",
    "password_hash",
    "new_password",
    "token",
    "access_token",
    "authorization",
    "secret",
    "secret_key",
})


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_KEYS else _redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_redact(item) for item in value]
    return value


def redact_sensitive_fields(
    logger: Any,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """structlog processor masking credential-bearing keys at any depth."""
    for key in list(event_dict):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
        else:
            event_dict[key] = _redact(event_dict[key])
    return event_dict


def add_service_context(
    logger: Any,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", "coolcare-api")
    event_dict.setdefault("environment", settings.ENVIRONMENT)
    return event_dict


def setup_logging() -> None:
    """
    Configure structlog and the stdlib root logger.

    Development gets a colored console renderer; every other environment
    emits one JSON object per line.
    """
    level = logging.DEBUG if settings.DEBUG else logging.INFO

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        redact_sensitive_fields,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if settings.is_development:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        processors = shared_processors + [
            add_service_context,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def log_request_details(
    request_id: str,
    method: str,
    path: str,
    client_ip: str | None = None,
) -> Dict[str, Any]:
    """Context dict for the request start line."""
    context = {
        "request_id": request_id,
        "method": method,
        "path": path,
    }
    if client_ip:
        context["client_ip"] = client_ip
    return context


def log_error_details(error: Exception, **kwargs: Any) -> Dict[str, Any]:
    """
    Context dict for an error line.

    Args:
        error: Exception being reported
        **kwargs: Request or operation context (path, method, ...)

    Returns:
        Context dictionary for logging
    """
    return {
        "error_type": type(error).__name__,
        "error_message": str(error),
        **kwargs,
    }
