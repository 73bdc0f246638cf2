import os

os.environ.setdefault("TESTING", "true")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
import fakeredis
import fakeredis.aioredis

from common.core.config import settings
from common.core.redis_client import LinkCache, RedisClient
from common.db.memory import InMemoryLinkStore, InMemorySettingStore, InMemoryUserStore
from common.db.sql.connection import Base, create_session_factory
from common.db.sql.link_repository import SQLLinkStore, SQLSettingStore
from common.db.sql.init_db import seed_admin_user, seed_default_settings
from common.db.stores import get_link_cache, get_link_store, get_setting_store, get_user_store

settings.testing = True
# cheapest cost bcrypt accepts
settings.bcrypt_rounds = 4


@pytest.fixture
def anyio_backend():
    return 'asyncio'


# --- Redis (fakeredis) ---
@pytest.fixture
def fake_redis():
    return fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def link_cache(fake_redis):
    return LinkCache(RedisClient(fake_redis), ttl_seconds=60)


# --- PostgreSQL stand-in (SQLite in-memory) ---
@pytest_asyncio.fixture
async def sql_engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def sql_link_store(sql_engine):
    return SQLLinkStore(create_session_factory(sql_engine), sql_engine)


@pytest.fixture
def sql_setting_store(sql_engine):
    return SQLSettingStore(create_session_factory(sql_engine))


@pytest.fixture
def memory_link_store():
    return InMemoryLinkStore()


@pytest_asyncio.fixture
async def setting_store():
    store = InMemorySettingStore()
    await seed_default_settings(store)
    return store


@pytest_asyncio.fixture
async def user_store():
    store = InMemoryUserStore()
    await seed_admin_user(store)
    return store


@pytest_asyncio.fixture
async def admin_user(user_store):
    return await user_store.get_by_username(settings.admin_username)


@pytest_asyncio.fixture
async def client(sql_link_store, setting_store, user_store, link_cache):
    from app.main import app as fastapi_app

    fastapi_app.dependency_overrides[get_link_store] = lambda: sql_link_store
    fastapi_app.dependency_overrides[get_setting_store] = lambda: setting_store
    fastapi_app.dependency_overrides[get_link_cache] = lambda: link_cache
    fastapi_app.dependency_overrides[get_user_store] = lambda: user_store

    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as c:
        yield c

    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(admin_user):
    from app.auth import create_user_token
    token = create_user_token(admin_user)
    return {"Authorization": f"Bearer {token}"}
