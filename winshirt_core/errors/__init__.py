# =============================================================================
# winshirt_core/errors/__init__.py
# Centralized Error Handling for the WinShirt data layer
# =============================================================================

from .exceptions import (
    WinShirtError,
    ValidationError,
    NotFoundError,
    RemoteServiceError,
    OfflineError,
    ConcurrencyError,
    LotteryNotReadyError,
    CategoryInUseError,
    SnapshotError,
    ConfigurationError,
)

from .handlers import (
    handle_error,
    error_boundary,
)

__all__ = [
    # Exceptions
    "WinShirtError",
    "ValidationError",
    "NotFoundError",
    "RemoteServiceError",
    "OfflineError",
    "ConcurrencyError",
    "LotteryNotReadyError",
    "CategoryInUseError",
    "SnapshotError",
    "ConfigurationError",
    # Handlers
    "handle_error",
    "error_boundary",
]
