"""
Structured logging for sleuth.

All modules log through structlog with snake_case event names and
key-value context:

    logger = get_logger(__name__)
    logger.info("subagent_started", execution_id=execution_id, task=task)

configure_logging() is idempotent and is called lazily by get_logger().
"""

import logging
import sys
from typing import Any

import structlog

_SENSITIVE_KEYS = (
    "api_key",
    "apikey",
    "password",
    "secret",
    "authorization",
    "access_token",
    "refresh_token",
)

# Fields that look sensitive by substring but only carry counts.
_SAFE_KEYS = {
    "tokens",
    "input_tokens",
    "output_tokens",
    "total_tokens",
    "prompt_tokens",
    "completion_tokens",
}

REDACTED = "***REDACTED***"

_configured = False


def filter_sensitive_data(logger: Any, method_name: str, event_dict: dict) -> dict:
    """structlog processor that redacts credentials from the event dict."""
    for key in list(event_dict.keys()):
        lowered = key.lower()
        if lowered in _SAFE_KEYS:
            continue
        if any(marker in lowered for marker in _SENSITIVE_KEYS):
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """
    Configure structlog and the stdlib root handler.

    Args:
        level: Log level name, defaults to settings.log_level
        json_logs: Render JSON lines instead of the console renderer,
            defaults to ``not settings.debug``
    """
    global _configured

    from sleuth.config import settings

    level_name = (level or settings.log_level).upper()
    if json_logs is None:
        json_logs = not settings.debug

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )

    renderer: Any
    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            filter_sensitive_data,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level_name, logging.INFO)
        ),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger, configuring logging on first use."""
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)


__all__ = ["configure_logging", "filter_sensitive_data", "get_logger", "REDACTED"]
