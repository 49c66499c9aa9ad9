# =============================================================================
# tests/unit/test_authentication.py
# Unit Tests for AuthService
# =============================================================================

import pytest

from winshirt_core.auth import ADMIN_ROLE, AuthService


@pytest.fixture
def session():
    return {}


@pytest.fixture
def auth(remote, notifier, session):
    return AuthService(remote, notifier=notifier, session=session)


class TestRegistration:

    @pytest.mark.asyncio
    async def test_register_creates_non_admin(self, auth, remote, notifier):
        result = await auth.register("ana@example.com", "s3cret!", full_name="Ana Martin")

        assert result.success
        assert result.data["isAdmin"] is False
        assert remote.users[0]["user_metadata"] == {"full_name": "Ana Martin", "isAdmin": False}
        assert notifier.messages["success"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email,password", [("not-an-email", "pw"), ("ana@example.com", "")])
    async def test_register_validation(self, auth, remote, email, password):
        result = await auth.register(email, password)

        assert result.error_code == "VALID_001"
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_duplicate_registration_fails(self, auth, remote):
        remote.add_user("ana@example.com", "pw")

        result = await auth.register("ana@example.com", "other")

        assert not result
        assert result.error_code == "REMOTE_001"

    @pytest.mark.asyncio
    async def test_resend_confirmation(self, auth, notifier):
        result = await auth.resend_confirmation("ana@example.com")

        assert result.success
        assert "Confirmation email sent to ana@example.com" in notifier.messages["info"]


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_stores_profile(self, auth, remote, session):
        remote.add_user("ana@example.com", "pw", {"full_name": "Ana"})

        result = await auth.login("ana@example.com", "pw")

        assert result.success
        assert session["authenticated"] is True
        assert session["name"] == "Ana"
        assert session["role"] == "user"
        assert auth.is_authenticated

    @pytest.mark.asyncio
    async def test_name_defaults_to_email_prefix(self, auth, remote, session):
        remote.add_user("leo@example.com", "pw")

        await auth.login("leo@example.com", "pw")

        assert session["name"] == "leo"

    @pytest.mark.asyncio
    async def test_wrong_password(self, auth, remote, session, notifier):
        remote.add_user("ana@example.com", "pw")

        result = await auth.login("ana@example.com", "nope")

        assert not result
        assert session == {}
        assert notifier.messages["error"]

    @pytest.mark.asyncio
    async def test_logout_clears_session(self, auth, remote, session):
        remote.add_user("ana@example.com", "pw")
        await auth.login("ana@example.com", "pw")
        session["cart"] = [1]

        result = await auth.logout()

        assert result.success
        assert session == {"cart": [1]}
        assert remote.session_user is None

    @pytest.mark.asyncio
    async def test_current_user(self, auth, remote):
        assert (await auth.current_user()).data is None

        remote.add_user("ana@example.com", "pw")
        await auth.login("ana@example.com", "pw")

        assert (await auth.current_user()).data["email"] == "ana@example.com"


class TestAdminRights:

    @pytest.mark.asyncio
    async def test_admin_from_metadata(self, auth, remote, session):
        remote.add_user("boss@example.com", "pw", {"isAdmin": True})

        await auth.login("boss@example.com", "pw")

        assert session["role"] == ADMIN_ROLE
        assert (await auth.is_admin()).data is True

    @pytest.mark.asyncio
    async def test_admin_from_roles_table(self, auth, remote, session):
        user = remote.add_user("boss@example.com", "pw")
        remote.tables["user_roles"] = [{"id": 1, "user_id": user["id"], "role": "admin"}]

        await auth.login("boss@example.com", "pw")

        assert session["role"] == ADMIN_ROLE

    @pytest.mark.asyncio
    async def test_not_admin_when_signed_out(self, auth):
        assert (await auth.is_admin()).data is False

    @pytest.mark.asyncio
    async def test_grant_admin(self, auth, remote):
        user = remote.add_user("ana@example.com", "pw", {"full_name": "Ana"})

        result = await auth.grant_admin("ana@example.com")

        assert result.success
        assert remote.tables["user_roles"][0]["user_id"] == user["id"]
        assert user["user_metadata"] == {"full_name": "Ana", "isAdmin": True}

    @pytest.mark.asyncio
    async def test_grant_admin_idempotent(self, auth, remote):
        remote.add_user("ana@example.com", "pw")
        await auth.grant_admin("ana@example.com")

        await auth.grant_admin("ana@example.com")

        assert len(remote.tables["user_roles"]) == 1

    @pytest.mark.asyncio
    async def test_grant_admin_unknown_user(self, auth):
        result = await auth.grant_admin("ghost@example.com")

        assert result.error_code == "DATA_404"
