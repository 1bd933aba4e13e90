"""Structured logging: component loggers, formatters and scoped context."""

import logging
from typing import Optional, Union

from .config import SERVICE_NAME, ContextualFilter, JSONFormatter, KeyValueFormatter, configure_logging
from .context import (
    bind_log_context,
    clear_log_context,
    get_log_context,
    log_context,
    pop_log_context,
    push_log_context,
)


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its component field with per-call extra."""

    def process(self, msg, kwargs):
        # Call-site extra wins over the adapter's defaults
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(
    name: str, component: Optional[str] = None
) -> Union[logging.Logger, ComponentLoggerAdapter]:
    """Get a logger, optionally tagging every record with a component.

    Example:
        >>> logger = get_logger(__name__, component="pipeline")
        >>> logger.info("Digest run started", extra={"event": "digest.run.started"})
    """
    logger = logging.getLogger(name)
    if component:
        return ComponentLoggerAdapter(logger, {"component": component})
    return logger


__all__ = [
    "SERVICE_NAME",
    "ComponentLoggerAdapter",
    "ContextualFilter",
    "JSONFormatter",
    "KeyValueFormatter",
    "configure_logging",
    "get_logger",
    "bind_log_context",
    "clear_log_context",
    "get_log_context",
    "log_context",
    "pop_log_context",
    "push_log_context",
]
