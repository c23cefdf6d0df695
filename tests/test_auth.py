"""Tests for login, token handling and role-based access."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from facility_ops.api.v1.deps import (FixedIdentityResolver, JWTAuthResolver,
                                      get_auth_resolver)
from facility_ops.core.security import (AuthContext, create_access_token,
                                        create_refresh_token)
from facility_ops.main import app
from facility_ops.models.user import User

LOGIN = "/api/v1/auth/login"


async def _seed_user(db_session: AsyncSession, **overrides) -> User:
    fields = {
        "username": "kiran",
        "email": "kiran@x.com",
        "password": "pw123456",
        "role": "manager",
    }
    fields.update(overrides)
    user = User(**fields)
    db_session.add(user)
    await db_session.commit()
    return user


def _use_identity(role: str) -> None:
    identity = AuthContext(user_id="u-1", name="Test", email="test@x.com", role=role)
    app.dependency_overrides[get_auth_resolver] = lambda: FixedIdentityResolver(identity)


def _use_jwt() -> None:
    app.dependency_overrides[get_auth_resolver] = lambda: JWTAuthResolver()


# ── Login ───────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_login_sets_httponly_cookies(async_client: AsyncClient, db_session: AsyncSession):
    await _seed_user(db_session)
    resp = await async_client.post(LOGIN, data={"username": "kiran@x.com", "password": "pw123456"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"]
    assert body["refresh_token"]

    assert "access_token" in resp.cookies
    assert "refresh_token" in resp.cookies
    set_cookie = resp.headers.get("set-cookie")
    assert "HttpOnly" in set_cookie
    assert "SameSite=lax" in set_cookie


@pytest.mark.asyncio
async def test_login_wrong_password(async_client: AsyncClient, db_session: AsyncSession):
    await _seed_user(db_session)
    resp = await async_client.post(LOGIN, data={"username": "kiran@x.com", "password": "nope"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_login_unknown_user(async_client: AsyncClient):
    resp = await async_client.post(LOGIN, data={"username": "ghost@x.com", "password": "pw"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_login_deactivated_account(async_client: AsyncClient, db_session: AsyncSession):
    await _seed_user(db_session, is_active=False)
    resp = await async_client.post(LOGIN, data={"username": "kiran@x.com", "password": "pw123456"})
    assert resp.status_code == 403
    assert resp.json()["message"] == "Account is deactivated. Contact administrator."


@pytest.mark.asyncio
async def test_logout_clears_cookies(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/auth/logout")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Logged out"}
    assert "access_token" in resp.headers.get("set-cookie")


# ── Refresh ─────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_refresh_issues_new_tokens(async_client: AsyncClient, db_session: AsyncSession):
    user = await _seed_user(db_session)
    resp = await async_client.post(
        "/api/v1/auth/refresh", json={"refresh_token": create_refresh_token(user.id)}
    )
    assert resp.status_code == 200
    assert resp.json()["access_token"]


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(async_client: AsyncClient, db_session: AsyncSession):
    user = await _seed_user(db_session)
    resp = await async_client.post(
        "/api/v1/auth/refresh", json={"refresh_token": create_access_token(user.id)}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_refresh_without_token(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/auth/refresh")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Refresh token missing"


# ── Identity resolution ─────────────────────────────────────────────
@pytest.mark.asyncio
async def test_me_with_fixed_identity(async_client: AsyncClient):
    """In fixed mode every request resolves to the configured identity."""
    resp = await async_client.get("/api/v1/auth/me")
    assert resp.status_code == 200
    assert resp.json()["data"] == {
        "userId": "system",
        "name": "System User",
        "email": "system@example.com",
        "role": "admin",
    }


@pytest.mark.asyncio
async def test_me_with_bearer_token(async_client: AsyncClient, db_session: AsyncSession):
    user = await _seed_user(db_session, first_name="Kiran", last_name="Rao")
    _use_jwt()

    resp = await async_client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {create_access_token(user.id)}"}
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["userId"] == user.id
    assert data["name"] == "Kiran Rao"
    assert data["role"] == "manager"


@pytest.mark.asyncio
async def test_jwt_mode_rejects_missing_or_bad_token(async_client: AsyncClient):
    _use_jwt()
    resp = await async_client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Could not validate credentials"

    resp = await async_client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_jwt_resolver_ignores_inactive_user(db_session: AsyncSession):
    user = await _seed_user(db_session, is_active=False)
    context = await JWTAuthResolver().resolve(create_access_token(user.id), db_session)
    assert context is None


@pytest.mark.asyncio
async def test_jwt_resolver_builds_context(db_session: AsyncSession):
    user = await _seed_user(db_session)
    context = await JWTAuthResolver().resolve(create_access_token(user.id), db_session)
    assert context == AuthContext(user_id=user.id, name="kiran", email="kiran@x.com", role="manager")


# ── Role guards ─────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_employee_cannot_manage_supervisors(async_client: AsyncClient):
    _use_identity("employee")
    resp = await async_client.get("/api/v1/supervisors")
    assert resp.status_code == 403
    assert resp.json()["message"].startswith("Access denied")


@pytest.mark.asyncio
async def test_manager_can_manage_supervisors_but_not_users(async_client: AsyncClient):
    _use_identity("manager")
    assert (await async_client.get("/api/v1/supervisors")).status_code == 200
    assert (await async_client.get("/api/v1/users")).status_code == 403


@pytest.mark.asyncio
async def test_supervisor_role_cannot_manage_supervisors(async_client: AsyncClient):
    _use_identity("supervisor")
    resp = await async_client.post("/api/v1/supervisors", json={
        "name": "X Y", "email": "x@x.com", "phone": "1", "password": "pw",
    })
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_health_is_public(async_client: AsyncClient):
    _use_jwt()
    resp = await async_client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "OK"
    assert resp.json()["db"] is True
