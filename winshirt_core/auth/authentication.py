# =============================================================================
# winshirt_core/auth/authentication.py
# Supabase authentication and admin roles
# =============================================================================
"""
Authentication for the WinShirt storefront.

Accounts live in Supabase Auth. The signed-in user is kept in a session
mapping; Streamlit pages pass ``st.session_state`` so the login survives
reruns, scripts and tests use a plain dict.

A user is an administrator when their metadata has ``isAdmin`` or when a
``user_roles`` row with role ``admin`` exists for them.
"""

from __future__ import annotations
from typing import Any, Dict, MutableMapping, Optional

from winshirt_core.errors import NotFoundError, ValidationError
from winshirt_core.notifications import Notifier
from winshirt_core.services import BaseService, ServiceResult

ROLES_TABLE = "user_roles"
ADMIN_ROLE = "admin"

SESSION_KEYS = ("authenticated", "user_id", "email", "name", "role")


def _user_dict(user: Any) -> Dict[str, Any]:
    """Plain dict view of a Supabase user object (or dict)."""
    if user is None:
        return {}
    if isinstance(user, dict):
        return user
    return {
        "id": getattr(user, "id", None),
        "email": getattr(user, "email", None),
        "user_metadata": getattr(user, "user_metadata", None) or {},
    }


def _display_name(user: Dict[str, Any]) -> str:
    metadata = user.get("user_metadata") or {}
    email = user.get("email") or ""
    return metadata.get("full_name") or email.split("@")[0]


class AuthService(BaseService):
    """
    Sign up, sign in and admin checks.

    Usage:
        auth = AuthService(gateway, session=st.session_state)
        result = await auth.login(email, password)
        if result and result.data["role"] == "admin":
            ...
    """

    def __init__(
        self,
        remote: Any,
        notifier: Optional[Notifier] = None,
        session: Optional[MutableMapping[str, Any]] = None,
    ):
        super().__init__(notifier)
        self.remote = remote
        self.session: MutableMapping[str, Any] = session if session is not None else {}

    # =========================================================================
    # SESSION
    # =========================================================================

    @property
    def is_authenticated(self) -> bool:
        return bool(self.session.get("authenticated"))

    def _store_session(self, user: Dict[str, Any], is_admin: bool) -> Dict[str, Any]:
        profile = {
            "authenticated": True,
            "user_id": user.get("id"),
            "email": user.get("email"),
            "name": _display_name(user),
            "role": ADMIN_ROLE if is_admin else "user",
        }
        self.session.update(profile)
        return profile

    def _clear_session(self) -> None:
        for key in SESSION_KEYS:
            if key in self.session:
                del self.session[key]

    # =========================================================================
    # ACCOUNT
    # =========================================================================

    async def register(self, email: str, password: str, full_name: str = "") -> ServiceResult:
        """Create an account; new users are never administrators."""
        if not email or "@" not in email:
            return self.fail(ValidationError("A valid email is required", field="email", entity="auth"))
        if not password:
            return self.fail(ValidationError("A password is required", field="password", entity="auth"))

        async def _register() -> Dict[str, Any]:
            response = await self.remote.sign_up(
                email, password, {"full_name": full_name, "isAdmin": False}
            )
            user = _user_dict(getattr(response, "user", None))
            self.notifier.success("Account created, check your inbox to confirm it")
            return {"id": user.get("id"), "email": email, "name": full_name, "isAdmin": False}

        return await self.safe_execute("Registering account", _register)

    async def login(self, email: str, password: str) -> ServiceResult:
        async def _login() -> Dict[str, Any]:
            response = await self.remote.sign_in_with_password(email, password)
            user = _user_dict(getattr(response, "user", None))
            admin = await self._check_admin(user)
            profile = self._store_session(user, admin)
            self.notifier.success(f"Welcome {profile['name']}")
            return profile

        return await self.safe_execute("Signing in", _login)

    async def logout(self) -> ServiceResult:
        async def _logout() -> bool:
            try:
                await self.remote.sign_out()
            finally:
                self._clear_session()
            return True

        return await self.safe_execute("Signing out", _logout)

    async def resend_confirmation(self, email: str) -> ServiceResult:
        async def _resend() -> bool:
            await self.remote.resend_confirmation(email)
            self.notifier.info(f"Confirmation email sent to {email}")
            return True

        return await self.safe_execute("Resending confirmation", _resend)

    async def current_user(self) -> ServiceResult:
        """The user of the current Supabase session, or None."""
        async def _current() -> Optional[Dict[str, Any]]:
            user = _user_dict(await self.remote.get_user())
            return user or None

        return await self.safe_execute("Loading current user", _current)

    # =========================================================================
    # ADMIN
    # =========================================================================

    async def _check_admin(self, user: Dict[str, Any]) -> bool:
        if (user.get("user_metadata") or {}).get("isAdmin") is True:
            return True
        if not user.get("id"):
            return False
        rows = await self.remote.select(
            ROLES_TABLE,
            filters={"user_id": user["id"], "role": ADMIN_ROLE},
            limit=1,
        )
        return bool(rows)

    async def is_admin(self) -> ServiceResult:
        async def _is_admin() -> bool:
            user = _user_dict(await self.remote.get_user())
            return bool(user) and await self._check_admin(user)

        return await self.safe_execute("Checking admin rights", _is_admin)

    async def grant_admin(self, email: str) -> ServiceResult:
        """Give the ``admin`` role to an existing account (service key required)."""
        async def _grant() -> bool:
            users = [_user_dict(user) for user in await self.remote.admin_list_users()]
            user = next((u for u in users if u.get("email") == email), None)
            if user is None:
                raise NotFoundError(f"No user with email {email}", table="auth.users")

            existing = await self.remote.select(
                ROLES_TABLE, filters={"user_id": user["id"], "role": ADMIN_ROLE}, limit=1
            )
            if existing:
                self.notifier.info(f"{email} is already an administrator")
                return True

            await self.remote.insert(ROLES_TABLE, {"user_id": user["id"], "role": ADMIN_ROLE})
            metadata = {**(user.get("user_metadata") or {}), "isAdmin": True}
            await self.remote.admin_update_user(user["id"], {"user_metadata": metadata})
            self.notifier.success(f"Administrator rights granted to {email}")
            return True

        return await self.safe_execute("Granting admin rights", _grant)
