"""
Degrade-on-error helper

Wraps coroutine functions whose failures must never reach the caller
(cache lookups, moderator selection, stats bookkeeping). The exception is
logged with the wrapped function's name and a safe default is returned in
its place.
"""
import functools
import logging
from typing import Any, Callable, Optional


def degrade_on_error(
    default: Any = None,
    logger: Optional[logging.Logger] = None,
    event: Optional[str] = None,
):
    """
    Decorator returning ``default`` when the wrapped coroutine raises

    Args:
        default: Value returned on failure
        logger: Logger used to record the failure (module logger if None)
        event: Short event name for the log line (function name if None)

    Usage:
        @degrade_on_error(default=None, event="moderator_selection_failed")
        async def select_moderator(...):
            ...
    """
    def decorator(func: Callable):
        log = logger or logging.getLogger(func.__module__)
        name = event or f"{func.__name__}_failed"

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                log.warning(
                    f"{name}: {e}",
                    extra={"operation": func.__qualname__, "error": str(e)},
                    exc_info=True,
                )
                return default

        return wrapper
    return decorator
