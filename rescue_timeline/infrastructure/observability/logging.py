"""
Structured logging setup for the rescue timeline service.
Provides JSON-formatted logs with consistent fields and redaction of secrets.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory

REDACTED = "[redacted]"
REDACT_KEYS = frozenset(
    {
        "password",
        "token",
        "access_token",
        "refresh_token",
        "authorization",
        "api_key",
        "apikey",
        "secret",
        "supabase_anon_key",
        "supabaseanonkey",
        "anon_key",
    }
)
MAX_STRING_LENGTH = 1000
MAX_DEPTH = 4
MAX_ITEMS = 50

# Fields structlog itself adds; never rewritten by the redactor
_RESERVED_FIELDS = frozenset({"event", "level", "logger", "timestamp"})


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _redact_sensitive_fields,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def redact(value: Any, depth: int = 0) -> Any:
    """Mask secret keys, truncate long strings and cap nesting/collection sizes."""
    if depth > MAX_DEPTH:
        return "[redacted_depth_limit]"
    if isinstance(value, str):
        if len(value) > MAX_STRING_LENGTH:
            return f"{value[:MAX_STRING_LENGTH]}…"
        return value
    if isinstance(value, list | tuple):
        return [redact(item, depth + 1) for item in value[:MAX_ITEMS]]
    if isinstance(value, dict):
        out: dict[str, Any] = {}
        items = list(value.items())
        for key, child in items[:MAX_ITEMS]:
            if str(key).lower() in REDACT_KEYS:
                out[key] = REDACTED
            else:
                out[key] = redact(child, depth + 1)
        if len(items) > MAX_ITEMS:
            out["_truncated"] = True
        return out
    return value


def _redact_sensitive_fields(
    logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor applying `redact` to every user-supplied field."""
    for key in list(event_dict.keys()):
        if key in _RESERVED_FIELDS:
            continue
        if key.lower() in REDACT_KEYS:
            event_dict[key] = REDACTED
        else:
            event_dict[key] = redact(event_dict[key], depth=1)
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


# Convenience functions for common log patterns
def log_health_check(service: str, healthy: bool, latency_ms: float, error: str = None):
    """Log health check results with consistent fields."""
    logger = get_logger("health")

    log_data = {
        "service": service,
        "healthy": healthy,
        "latency_ms": latency_ms,
    }

    if error:
        log_data["error"] = error

    if healthy:
        logger.info("Health check passed", **log_data)
    else:
        logger.error("Health check failed", **log_data)


def log_request(method: str, path: str, status_code: int, duration_ms: float, user_id: str = None):
    """Log HTTP requests with consistent fields."""
    logger = get_logger("http")

    log_data = {
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
    }

    if user_id:
        log_data["user_id"] = user_id

    if status_code >= 400:
        logger.warning("HTTP request failed", **log_data)
    else:
        logger.info("HTTP request completed", **log_data)
