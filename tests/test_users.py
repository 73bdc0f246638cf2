import pytest
import pytest_asyncio
from httpx import AsyncClient
from mongomock_motor import AsyncMongoMockClient

from app.auth import create_access_token
from common.core.config import settings
from common.core.errors import ConflictError
from common.db.memory import InMemoryUserStore
from common.db.nosql.connection import ensure_indexes
from common.db.nosql.user_repository import MongoUserStore
from common.db.sql.init_db import seed_admin_user
from common.db.sql.user_repository import SQLUserStore
from common.db.sql.connection import create_session_factory
from common.models.schemas import User
from common.utils.passwords import hash_password, verify_password

NEW_USER = {
    "username": "marketing",
    "email": "Marketing@Example.com",
    "password": "campaigns-2024",
    "name": "Marketing Team",
}


async def login(client: AsyncClient, username: str, password: str):
    return await client.post("/api/auth/login", data={"username": username, "password": password})


async def create_user(client: AsyncClient, auth_headers, **overrides):
    payload = dict(NEW_USER, **overrides)
    return await client.post("/api/users", json=payload, headers=auth_headers)


# --- stores ---
@pytest_asyncio.fixture
async def mongo_user_store():
    db = AsyncMongoMockClient()["shortener_test"]
    await ensure_indexes(db)
    return MongoUserStore(db)


@pytest.fixture(params=["memory", "sql", "mongo"])
def any_user_store(request):
    if request.param == "memory":
        return InMemoryUserStore()
    if request.param == "sql":
        engine = request.getfixturevalue("sql_engine")
        return SQLUserStore(create_session_factory(engine))
    return request.getfixturevalue("mongo_user_store")


@pytest.mark.asyncio
async def test_user_store_put_get_update(any_user_store):
    created = await any_user_store.put(User(username="ana", email="ana@example.com", password_hash="x"))
    assert (await any_user_store.get(created.id)).username == "ana"
    assert (await any_user_store.get_by_username("ana")).id == created.id
    assert (await any_user_store.get_by_email("ana@example.com")).id == created.id
    assert await any_user_store.get("missing") is None
    assert await any_user_store.count() == 1

    updated = await any_user_store.update(created.id, {"name": "Ana", "is_active": False})
    assert updated.name == "Ana"
    assert not updated.is_active
    assert updated.created_at.tzinfo is not None
    assert await any_user_store.update("missing", {"name": "x"}) is None


@pytest.mark.asyncio
async def test_user_store_rejects_duplicates(any_user_store):
    await any_user_store.put(User(username="ana", email="ana@example.com"))
    with pytest.raises(ConflictError):
        await any_user_store.put(User(username="ana", email="other@example.com"))
    with pytest.raises(ConflictError):
        await any_user_store.put(User(username="bob", email="ana@example.com"))
    assert [user.username for user in await any_user_store.list_all()] == ["ana"]


@pytest.mark.asyncio
async def test_seed_admin_user_runs_once(any_user_store):
    admin = await seed_admin_user(any_user_store)
    assert admin.username == settings.admin_username
    assert verify_password(settings.admin_password, admin.password_hash)
    assert await seed_admin_user(any_user_store) is None
    assert await any_user_store.count() == 1


def test_password_hashing():
    hashed = hash_password("correct horse")
    assert hashed != "correct horse"
    assert verify_password("correct horse", hashed)
    assert not verify_password("wrong horse", hashed)
    assert not verify_password("correct horse", "not-a-bcrypt-hash")
    assert not verify_password("", hashed)


# --- API ---
@pytest.mark.asyncio
async def test_login_returns_user(client: AsyncClient):
    response = await login(client, "admin", "admin123")
    assert response.status_code == 200
    body = response.json()
    assert body["user"]["username"] == "admin"
    assert "password_hash" not in body["user"]


@pytest.mark.asyncio
async def test_users_require_auth(client: AsyncClient):
    assert (await client.get("/api/users")).status_code == 401
    assert (await client.post("/api/users", json=NEW_USER)).status_code == 401


@pytest.mark.asyncio
async def test_create_list_and_get_user(client: AsyncClient, auth_headers):
    response = await create_user(client, auth_headers)
    assert response.status_code == 201
    user = response.json()["data"]
    assert user["email"] == "marketing@example.com"
    assert user["is_active"] is True
    assert "password_hash" not in user

    users = (await client.get("/api/users", headers=auth_headers)).json()["data"]
    assert [u["username"] for u in users] == ["admin", "marketing"]

    response = await client.get(f"/api/users/{user['id']}", headers=auth_headers)
    assert response.json()["data"]["username"] == "marketing"
    assert (await client.get("/api/users/missing", headers=auth_headers)).status_code == 404

    # the new account can log in
    assert (await login(client, "marketing", NEW_USER["password"])).status_code == 200


@pytest.mark.asyncio
async def test_create_user_conflicts_and_validation(client: AsyncClient, auth_headers):
    await create_user(client, auth_headers)

    response = await create_user(client, auth_headers, email="else@example.com")
    assert response.status_code == 409
    assert response.json()["error"] == "Username already exists"

    response = await create_user(client, auth_headers, username="other")
    assert response.status_code == 409
    assert response.json()["error"] == "Email already exists"

    assert (await create_user(client, auth_headers, username="x y", email="a@b.co")).status_code == 400
    assert (await create_user(client, auth_headers, username="short", email="nope")).status_code == 400
    assert (await create_user(client, auth_headers, username="shortpw", email="s@b.co", password="123")).status_code == 400


@pytest.mark.asyncio
async def test_update_user(client: AsyncClient, auth_headers):
    user = (await create_user(client, auth_headers)).json()["data"]

    response = await client.put(f"/api/users/{user['id']}", json={"name": "Growth"}, headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Growth"

    response = await client.put(f"/api/users/{user['id']}", json={"username": "admin"}, headers=auth_headers)
    assert response.status_code == 409

    response = await client.put(f"/api/users/{user['id']}", json={"email": None}, headers=auth_headers)
    assert response.status_code == 400

    response = await client.put("/api/users/missing", json={"name": "x"}, headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_deactivated_user_cannot_log_in_or_use_token(client: AsyncClient, auth_headers):
    user = (await create_user(client, auth_headers)).json()["data"]
    token = (await login(client, "marketing", NEW_USER["password"])).json()["access_token"]
    user_headers = {"Authorization": f"Bearer {token}"}
    assert (await client.get("/api/auth/me", headers=user_headers)).status_code == 200

    response = await client.delete(f"/api/users/{user['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"]["is_active"] is False

    assert (await login(client, "marketing", NEW_USER["password"])).status_code == 401
    assert (await client.get("/api/auth/me", headers=user_headers)).status_code == 401

    # still listed, and can be reactivated
    response = await client.put(f"/api/users/{user['id']}", json={"is_active": True}, headers=auth_headers)
    assert response.json()["data"]["is_active"] is True
    assert (await login(client, "marketing", NEW_USER["password"])).status_code == 200


@pytest.mark.asyncio
async def test_cannot_deactivate_yourself(client: AsyncClient, auth_headers, admin_user):
    response = await client.delete(f"/api/users/{admin_user.id}", headers=auth_headers)
    assert response.status_code == 400
    response = await client.put(f"/api/users/{admin_user.id}", json={"is_active": False}, headers=auth_headers)
    assert response.status_code == 400
    assert (await client.delete("/api/users/missing", headers=auth_headers)).status_code == 404


@pytest.mark.asyncio
async def test_change_password(client: AsyncClient, auth_headers):
    response = await client.post(
        "/api/auth/change-password",
        json={"current_password": "wrong-one", "new_password": "new-secret-1"},
        headers=auth_headers,
    )
    assert response.status_code == 401
    assert response.json()["error"] == "Current password is incorrect"

    response = await client.post(
        "/api/auth/change-password",
        json={"current_password": "admin123", "new_password": "new-secret-1"},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert (await login(client, "admin", "admin123")).status_code == 401
    assert (await login(client, "admin", "new-secret-1")).status_code == 200


@pytest.mark.asyncio
async def test_change_password_through_users_route(client: AsyncClient, auth_headers, admin_user):
    other = (await create_user(client, auth_headers)).json()["data"]
    payload = {"current_password": "admin123", "new_password": "rotated-pass"}

    response = await client.post(f"/api/users/{other['id']}/change-password", json=payload, headers=auth_headers)
    assert response.status_code == 403

    response = await client.post(f"/api/users/{admin_user.id}/change-password", json=payload, headers=auth_headers)
    assert response.status_code == 200
    assert (await login(client, "admin", "rotated-pass")).status_code == 200


@pytest.mark.asyncio
async def test_register_closed_without_auth(client: AsyncClient, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "allow_registration", False)
    assert (await client.post("/api/auth/register", json=NEW_USER)).status_code == 401

    response = await client.post("/api/auth/register", json=NEW_USER, headers=auth_headers)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user"]["username"] == "marketing"
    assert data["access_token"]


@pytest.mark.asyncio
async def test_open_registration(client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "allow_registration", True)
    response = await client.post("/api/auth/register", json=NEW_USER)
    assert response.status_code == 201
    token = response.json()["data"]["access_token"]

    response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.json()["data"]["username"] == "marketing"


@pytest.mark.asyncio
async def test_logout(client: AsyncClient, auth_headers):
    assert (await client.post("/api/auth/logout")).status_code == 401
    response = await client.post("/api/auth/logout", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["success"] is True


@pytest.mark.asyncio
async def test_token_for_unknown_user_is_rejected(client: AsyncClient):
    token = create_access_token({"sub": "no-such-user"})
    response = await client.get("/api/users", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
