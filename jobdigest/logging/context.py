"""Context propagation for structured logging.

Fields pushed here (batch_id, contact_id, channel, ...) are injected into every
log record emitted within the scope. Context lives in a contextvar, so each
thread sees its own stack; use ``bind_log_context`` to carry the caller's
context into worker threads.
"""

import contextvars
import functools
from contextvars import ContextVar, Token
from typing import Any, Callable, Dict, Optional, TypeVar

T = TypeVar("T")

LogContextVar: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the current logging context."""
    return LogContextVar.get().copy()


def push_log_context(**kwargs) -> Token:
    """Merge fields into the logging context.

    Returns:
        Token for pop_log_context() to restore the previous state

    Example:
        >>> token = push_log_context(batch_id="dgst-1700000000000-ab12cd34")
        >>> pop_log_context(token)
    """
    current = LogContextVar.get()
    return LogContextVar.set({**current, **kwargs})


def pop_log_context(token: Token) -> None:
    LogContextVar.reset(token)


def clear_log_context() -> None:
    """Clear all logging context fields (mostly useful in tests)."""
    LogContextVar.set({})


def bind_log_context(func: Callable[..., T]) -> Callable[..., T]:
    """Wrap ``func`` so it runs with a snapshot of the caller's context.

    Thread pools do not inherit contextvars; submitting the wrapped callable
    keeps batch_id and friends on records logged by workers.
    """
    snapshot = contextvars.copy_context()

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        return snapshot.copy().run(func, *args, **kwargs)

    return wrapper


class log_context:
    """Context manager for scoped logging context.

    Example:
        >>> with log_context(batch_id="dgst-1", contact_id=42):
        ...     logger.info("Sending digest")  # includes batch_id and contact_id
    """

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.token: Optional[Token] = None

    def __enter__(self):
        self.token = push_log_context(**self.kwargs)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.token is not None:
            pop_log_context(self.token)
        return False
