# =============================================================================
# winshirt_core/errors/handlers.py
# Error Handling Utilities for the WinShirt data layer
# =============================================================================

from __future__ import annotations
import functools
import traceback
from typing import Any, Awaitable, Callable, Optional, TypeVar

from winshirt_core.logging import get_logger
from winshirt_core.notifications import LoggingNotifier, Notifier
from .exceptions import WinShirtError

logger = get_logger(__name__)

T = TypeVar("T")

_default_notifier = LoggingNotifier()


def handle_error(
    error: Exception,
    notifier: Optional[Notifier] = None,
    show_user_message: bool = True,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> None:
    """
    Centralized error handling function.

    Args:
        error: The exception to handle
        notifier: Where the user-facing message goes (log sink if None)
        show_user_message: Whether to notify the user
        log_error: Whether to log the error
        user_message: Custom message to show user (uses error message if None)
    """
    if isinstance(error, WinShirtError):
        message = user_message or error.message
        code = error.code
        details = error.details
        recoverable = error.recoverable
    else:
        message = user_message or str(error)
        code = "UNKNOWN"
        details = {"traceback": traceback.format_exc()}
        recoverable = True

    if log_error:
        logger.error(
            f"[{code}] {message}",
            extra={"details": details},
            exc_info=error,
        )

    if show_user_message:
        notifier = notifier or _default_notifier
        if recoverable:
            notifier.error(f"Error: {message}")
        else:
            notifier.error(f"Critical Error: {message}. Please contact support.")


def error_boundary(
    default_return: Any = None,
    error_message: Optional[str] = None,
    log: bool = True,
):
    """
    Decorator wrapping an async function with error handling.

    Usage:
        @error_boundary(default_return=[], error_message="Refresh failed")
        async def reload() -> List[dict]:
            ...
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[Optional[T]]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Optional[T]:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                if log:
                    logger.error(
                        f"Error in {func.__name__}: {e}",
                        exc_info=True,
                    )
                if error_message:
                    _default_notifier.error(error_message)
                return default_return

        return wrapper

    return decorator
