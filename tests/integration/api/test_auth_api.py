"""Integration tests for the authentication API."""

import pytest
from httpx import AsyncClient

from keystone.core.auth.schemas import TokenKind
from keystone.core.permissions.registry import RoleSlug
from tests.factories.user import ApiKeyCreateFactory, RegisterRequestFactory
from tests.helpers import TEST_PASSWORD, api_key_header, bearer


pytestmark = pytest.mark.integration


class TestRegister:
    async def test_register_success(self, client: AsyncClient):
        """Register a new user and get a token pair with the default role."""
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "newuser@example.com",
                "password": TEST_PASSWORD,
                "name": "New User",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 3600
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["user"]["email"] == "newuser@example.com"
        assert data["user"]["is_active"] is True
        assert "password_hash" not in data["user"]

        me = await client.get("/api/v1/auth/me", headers=bearer(data["access_token"]))
        assert me.json()["roles"] == ["user"]

    async def test_register_from_factory(self, client: AsyncClient):
        payload = RegisterRequestFactory.build().model_dump(mode="json")

        response = await client.post("/api/v1/auth/register", json=payload)

        assert response.status_code == 201

    async def test_register_duplicate_email(self, client: AsyncClient):
        """The second registration with the same email is a conflict."""
        payload = {"email": "taken@example.com", "password": TEST_PASSWORD}
        first = await client.post("/api/v1/auth/register", json=payload)
        assert first.status_code == 201

        response = await client.post("/api/v1/auth/register", json=payload)

        assert response.status_code == 409
        problem = response.json()
        assert problem["type"].endswith("/errors/email_exists")
        assert problem["status"] == 409

    async def test_register_weak_password(self, client: AsyncClient):
        """A password without an uppercase letter is rejected with field detail."""
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": "weak@example.com", "password": "password1!"},
        )

        assert response.status_code == 422
        errors = response.json()["errors"]
        assert errors[0]["field"] == "password"
        assert "uppercase letter" in errors[0]["message"]

    async def test_register_invalid_email(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": "not-an-email", "password": TEST_PASSWORD},
        )

        assert response.status_code == 422


class TestLogin:
    async def test_login_success(self, client: AsyncClient, register_user):
        user, _ = await register_user()

        response = await client.post(
            "/api/v1/auth/login",
            json={"email": user.email, "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["refresh_token"]

    @pytest.mark.parametrize("email_known", [True, False])
    async def test_login_failures_look_alike(
        self, client: AsyncClient, register_user, email_known: bool
    ):
        """Unknown email and wrong password give the same response."""
        user, _ = await register_user()
        email = user.email if email_known else "nobody@example.com"

        response = await client.post(
            "/api/v1/auth/login", json={"email": email, "password": "Wr0ng!Pass"}
        )

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["detail"] == "Invalid email or password"

    async def test_login_inactive_user(self, app, client: AsyncClient, register_user):
        user, _ = await register_user()
        await app.state.users.update_by_id(user.id, {"is_active": False})

        response = await client.post(
            "/api/v1/auth/login", json={"email": user.email, "password": TEST_PASSWORD}
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    async def test_login_stamps_last_login(self, app, client: AsyncClient, register_user):
        user, _ = await register_user()

        await client.post(
            "/api/v1/auth/login", json={"email": user.email, "password": TEST_PASSWORD}
        )

        stored = await app.state.users.find_by_id(user.id)
        assert stored.last_login_at is not None

    async def test_login_token_carries_primary_role(
        self, app, client: AsyncClient, register_user
    ):
        user, _ = await register_user(role=RoleSlug.ADMIN)

        response = await client.post(
            "/api/v1/auth/login", json={"email": user.email, "password": TEST_PASSWORD}
        )

        payload = app.state.tokens.verify(response.json()["access_token"], TokenKind.ACCESS)
        assert payload.role == "admin"


class TestRefresh:
    async def test_refresh_success(self, client: AsyncClient, register_user):
        _, tokens = await register_user()

        response = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens.refresh_token}
        )

        assert response.status_code == 200
        new_access = response.json()["access_token"]
        me = await client.get("/api/v1/auth/me", headers=bearer(new_access))
        assert me.status_code == 200

    async def test_access_token_cannot_refresh(self, client: AsyncClient, register_user):
        _, tokens = await register_user()

        response = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens.access_token}
        )

        assert response.status_code == 401
        assert response.json()["reason"] == "invalid_token"

    async def test_refresh_token_cannot_authenticate(
        self, client: AsyncClient, register_user
    ):
        _, tokens = await register_user()

        response = await client.get("/api/v1/auth/me", headers=bearer(tokens.refresh_token))

        assert response.status_code == 401

    async def test_deleted_user_cannot_refresh(self, app, client: AsyncClient, register_user):
        user, tokens = await register_user()
        await app.state.users.soft_delete_by_id(user.id)

        response = await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens.refresh_token}
        )

        assert response.status_code == 401


class TestProfile:
    async def test_me(self, client: AsyncClient, register_user):
        user, tokens = await register_user(role=RoleSlug.MANAGER)

        response = await client.get("/api/v1/auth/me", headers=bearer(tokens))

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == str(user.id)
        assert data["roles"] == ["manager"]
        assert "users.view" in data["permissions"]
        assert data["permissions"] == sorted(data["permissions"])

    async def test_me_without_credentials(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 401
        problem = response.json()
        assert problem["type"].endswith("/errors/authentication_required")
        assert problem["reason"] == "authentication_required"
        assert problem["instance"] == "/api/v1/auth/me"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    async def test_me_with_garbage_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me", headers=bearer("garbage"))

        assert response.status_code == 401
        assert response.json()["reason"] == "invalid_token"

    async def test_change_password(self, client: AsyncClient, register_user):
        user, tokens = await register_user()

        response = await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": TEST_PASSWORD, "new_password": "N3w!Password"},
            headers=bearer(tokens),
        )
        assert response.status_code == 204

        old = await client.post(
            "/api/v1/auth/login", json={"email": user.email, "password": TEST_PASSWORD}
        )
        new = await client.post(
            "/api/v1/auth/login", json={"email": user.email, "password": "N3w!Password"}
        )
        assert old.status_code == 401
        assert new.status_code == 200

    async def test_change_password_wrong_current(self, client: AsyncClient, register_user):
        _, tokens = await register_user()

        response = await client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "Wr0ng!Pass", "new_password": "N3w!Password"},
            headers=bearer(tokens),
        )

        assert response.status_code == 422
        assert response.json()["errors"][0]["field"] == "current_password"


class TestApiKeyEndpoints:
    async def test_issue_list_and_use(self, client: AsyncClient, register_user):
        user, tokens = await register_user(role=RoleSlug.MANAGER)
        payload = ApiKeyCreateFactory.build(expires_in_days=30).model_dump()

        created = await client.post("/api/v1/auth/api-keys", json=payload, headers=bearer(tokens))

        assert created.status_code == 201
        key = created.json()
        assert key["key"].startswith("sk_")
        assert key["expires_at"] is not None

        listed = await client.get("/api/v1/auth/api-keys", headers=bearer(tokens))
        assert listed.status_code == 200
        assert [k["id"] for k in listed.json()] == [key["id"]]
        assert "key" not in listed.json()[0]

        used = await client.get("/api/v1/examples/api-key", headers=api_key_header(key["key"]))
        assert used.status_code == 200
        assert used.json()["principal_id"] == str(user.id)

    async def test_plain_user_cannot_issue_keys(self, client: AsyncClient, register_user):
        _, tokens = await register_user()

        response = await client.post(
            "/api/v1/auth/api-keys", json={"name": "ci key"}, headers=bearer(tokens)
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Access forbidden"
        assert response.json()["reason"] == "forbidden"

    async def test_deactivate(self, client: AsyncClient, register_user):
        _, tokens = await register_user(role=RoleSlug.MANAGER)
        key = (
            await client.post(
                "/api/v1/auth/api-keys", json={"name": "ci key"}, headers=bearer(tokens)
            )
        ).json()

        response = await client.delete(
            f"/api/v1/auth/api-keys/{key['id']}", headers=bearer(tokens)
        )

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        rejected = await client.get(
            "/api/v1/examples/protected", headers=api_key_header(key["key"])
        )
        assert rejected.status_code == 401

    async def test_cannot_deactivate_someone_elses_key(
        self, client: AsyncClient, register_user
    ):
        _, owner_tokens = await register_user(role=RoleSlug.MANAGER)
        _, other_tokens = await register_user(role=RoleSlug.MANAGER)
        key = (
            await client.post(
                "/api/v1/auth/api-keys", json={"name": "ci key"}, headers=bearer(owner_tokens)
            )
        ).json()

        response = await client.delete(
            f"/api/v1/auth/api-keys/{key['id']}", headers=bearer(other_tokens)
        )

        assert response.status_code == 404


class TestExampleGates:
    async def test_protected_accepts_either_credential(
        self, app, client: AsyncClient, register_user
    ):
        user, tokens = await register_user()
        key = await app.state.auth_service.generate_api_key(user.id, "ci key")

        by_token = await client.get("/api/v1/examples/protected", headers=bearer(tokens))
        by_key = await client.get(
            "/api/v1/examples/protected", headers=api_key_header(key.key)
        )

        assert by_token.status_code == 200
        assert by_key.status_code == 200

    async def test_api_key_route_requires_key(self, client: AsyncClient, register_user):
        _, tokens = await register_user()

        response = await client.get("/api/v1/examples/api-key", headers=bearer(tokens))

        assert response.status_code == 401
        assert response.json()["detail"] == "API key is required"

    async def test_unknown_api_key(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/examples/api-key", headers=api_key_header("sk_bogus")
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired API key"

    @pytest.mark.parametrize(
        ("role", "status"),
        [
            (RoleSlug.USER, 403),
            (RoleSlug.MANAGER, 403),
            (RoleSlug.ADMIN, 200),
            (RoleSlug.SUPER_ADMIN, 200),
        ],
    )
    async def test_admin_only(
        self, client: AsyncClient, register_user, role: RoleSlug, status: int
    ):
        _, tokens = await register_user(role=role)

        response = await client.get("/api/v1/examples/admin-only", headers=bearer(tokens))

        assert response.status_code == status

    @pytest.mark.parametrize(
        ("role", "status"), [(RoleSlug.USER, 403), (RoleSlug.MANAGER, 200)]
    )
    async def test_permission_check(
        self, client: AsyncClient, register_user, role: RoleSlug, status: int
    ):
        _, tokens = await register_user(role=role)

        response = await client.get(
            "/api/v1/examples/permission-check", headers=bearer(tokens)
        )

        assert response.status_code == status

    async def test_role_revocation_applies_immediately(
        self, app, client: AsyncClient, register_user
    ):
        """Gates consult the store, not the role claim in the token."""
        user, tokens = await register_user(role=RoleSlug.ADMIN)
        await app.state.roles.remove_role(user.id, RoleSlug.ADMIN)

        response = await client.get("/api/v1/examples/admin-only", headers=bearer(tokens))

        assert response.status_code == 403
