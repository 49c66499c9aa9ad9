# =============================================================================
# winshirt_core/services/base_service.py
# Base Service Class with Common Functionality
# =============================================================================

from __future__ import annotations
from abc import ABC
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from winshirt_core.errors import WinShirtError, handle_error
from winshirt_core.logging import LogContext, get_logger
from winshirt_core.notifications import LoggingNotifier, Notifier

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result container for service operations.

    Callers check ``result.success`` (or ``bool(result)``) instead of
    testing for None/False sentinels.
    """
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, data: Any = None, metadata: Dict[str, Any] = None) -> ServiceResult:
        """Create a successful result"""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(
        cls,
        error: str,
        error_code: str = "UNKNOWN",
        metadata: Dict[str, Any] = None
    ) -> ServiceResult:
        """Create a failed result"""
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            metadata=metadata,
        )

    @classmethod
    def from_exception(cls, e: Exception) -> ServiceResult:
        """Create a failed result from an exception"""
        if isinstance(e, WinShirtError):
            return cls(
                success=False,
                error=e.message,
                error_code=e.code,
                metadata=e.details,
            )
        return cls(
            success=False,
            error=str(e),
            error_code="EXCEPTION",
        )


class BaseService(ABC):
    """
    Abstract base class for all services.

    Provides common functionality:
    - Logging
    - Error handling paired with user notifications
    - Result standardization

    Usage:
        class MyService(BaseService):
            async def do_something(self) -> ServiceResult:
                return await self.safe_execute("Doing something", self._work)
    """

    def __init__(self, notifier: Optional[Notifier] = None):
        self.logger = get_logger(self.__class__.__name__)
        self.notifier: Notifier = notifier or LoggingNotifier()

    def log_operation(self, operation: str, **fields) -> LogContext:
        """
        Create a logging context for an operation.

        Usage:
            with self.log_operation("Pushing products", table="products") as op:
                ...
                op.note(rows=len(rows))
        """
        return LogContext(self.logger, operation, **fields)

    def fail(self, error: Exception, user_message: Optional[str] = None) -> ServiceResult:
        """Log, notify and convert an exception into a failed result."""
        handle_error(error, notifier=self.notifier, user_message=user_message)
        return ServiceResult.from_exception(error)

    async def safe_execute(
        self,
        operation: str,
        func: Callable[..., Awaitable[Any]],
        *args,
        **kwargs
    ) -> ServiceResult:
        """
        Await a coroutine function with error handling and logging.

        Args:
            operation: Description of the operation
            func: Coroutine function to execute
            *args, **kwargs: Arguments to pass to func

        Returns:
            ServiceResult with success/failure status
        """
        try:
            with self.log_operation(operation):
                result = await func(*args, **kwargs)
            return ServiceResult.ok(result)
        except WinShirtError as e:
            return self.fail(e)
        except Exception as e:
            return self.fail(e, user_message=f"{operation} failed")
