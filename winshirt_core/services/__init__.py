# =============================================================================
# winshirt_core/services/__init__.py
# Service Layer for the WinShirt data layer
# =============================================================================
"""
Service layer shared by every entity adapter.

Usage Example:
-------------
    from winshirt_core.services import ServiceResult

    result = await lottery_service.fetch_all()
    if result:
        lotteries = result.data
    else:
        print(result.error_code, result.error)
"""

from .base_service import BaseService, ServiceResult

__all__ = [
    "BaseService",
    "ServiceResult",
]
