# =============================================================================
# winshirt_core/errors/exceptions.py
# Custom Exception Hierarchy for the WinShirt data layer
# =============================================================================

from typing import Optional, Dict, Any


class WinShirtError(Exception):
    """
    Base exception for all WinShirt errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "REMOTE_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "WS_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# DATA LAYER EXCEPTIONS
# =============================================================================

class ValidationError(WinShirtError):
    """Raised when an entity fails validation before any network call"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        entity: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if entity:
            details["entity"] = entity

        super().__init__(
            message=message,
            code="VALID_001",
            details=details,
            **kwargs,
        )


class NotFoundError(WinShirtError):
    """Raised when an entity lookup by id finds nothing"""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        record_id: Optional[Any] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if table:
            details["table"] = table
        if record_id is not None:
            details["record_id"] = record_id

        super().__init__(
            message=message,
            code="DATA_404",
            details=details,
            **kwargs,
        )


# =============================================================================
# REMOTE SERVICE EXCEPTIONS
# =============================================================================

class RemoteServiceError(WinShirtError):
    """Raised when a call to the hosted backend fails"""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if table:
            details["table"] = table
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code=kwargs.pop("code", "REMOTE_001"),
            details=details,
            **kwargs,
        )


class OfflineError(RemoteServiceError):
    """Raised when an operation needs the backend and the probe says offline"""

    def __init__(self, message: str = "Remote data service is not reachable", **kwargs):
        super().__init__(message=message, code="REMOTE_002", **kwargs)


class ConcurrencyError(WinShirtError):
    """Raised when a compare-and-set update keeps losing to concurrent writers"""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        attempts: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if table:
            details["table"] = table
        if attempts is not None:
            details["attempts"] = attempts

        super().__init__(
            message=message,
            code="SYNC_409",
            details=details,
            **kwargs,
        )


# =============================================================================
# DOMAIN EXCEPTIONS
# =============================================================================

class LotteryNotReadyError(WinShirtError):
    """Raised when a winner is drawn for a lottery that is not ready"""

    def __init__(
        self,
        message: str,
        lottery_id: Optional[int] = None,
        status: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if lottery_id is not None:
            details["lottery_id"] = lottery_id
        if status:
            details["status"] = status

        super().__init__(
            message=message,
            code="LOTTERY_001",
            details=details,
            **kwargs,
        )


class CategoryInUseError(WinShirtError):
    """Raised when deleting a visual category that visuals still reference"""

    def __init__(
        self,
        message: str,
        category_id: Optional[int] = None,
        visual_ids: Optional[list] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if category_id is not None:
            details["category_id"] = category_id
        if visual_ids:
            details["visual_ids"] = visual_ids

        super().__init__(
            message=message,
            code="VISUAL_001",
            details=details,
            **kwargs,
        )


class SnapshotError(WinShirtError):
    """Raised when a backup snapshot cannot be read or written"""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if source:
            details["source"] = source

        super().__init__(
            message=message,
            code="BACKUP_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(WinShirtError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
