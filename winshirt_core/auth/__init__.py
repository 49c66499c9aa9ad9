# =============================================================================
# winshirt_core/auth/__init__.py
# Authentication
# =============================================================================

from .authentication import ADMIN_ROLE, AuthService

__all__ = ["ADMIN_ROLE", "AuthService"]
