"""
Store construction for the servers and the FastAPI dependencies that hand
the configured instances to route handlers.
"""
import logging
from typing import Optional

from fastapi import Request

from common.core.config import Settings
from common.core.redis_client import LinkCache, RedisClient
from common.db.base import LinkStore, SettingStore, UserStore
from common.db.fallback import FallbackLinkStore
from common.db.memory import InMemoryLinkStore, InMemorySettingStore, InMemoryUserStore
from common.utils.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)


def build_link_store(config: Settings) -> LinkStore:
    if config.store_backend == "sql":
        from common.db.sql.connection import get_engine, get_session_factory
        from common.db.sql.link_repository import SQLLinkStore
        primary = SQLLinkStore(get_session_factory(), get_engine())
    elif config.store_backend == "mongo":
        from common.db.nosql.connection import get_db
        from common.db.nosql.link_repository import MongoLinkStore
        primary = MongoLinkStore(get_db())
    else:
        logger.info("Using the in-memory link store")
        return InMemoryLinkStore()

    if not config.fallback_enabled:
        return primary

    breaker = CircuitBreaker(
        failure_threshold=config.fallback_failure_threshold,
        timeout=config.fallback_recovery_seconds,
        name=primary.name,
    )
    return FallbackLinkStore(primary, InMemoryLinkStore(), breaker, timeout_seconds=config.store_timeout_seconds)


def build_setting_store(config: Settings) -> SettingStore:
    if config.store_backend == "sql":
        from common.db.sql.connection import get_session_factory
        from common.db.sql.link_repository import SQLSettingStore
        return SQLSettingStore(get_session_factory())
    if config.store_backend == "mongo":
        from common.db.nosql.connection import get_db
        from common.db.nosql.link_repository import MongoSettingStore
        return MongoSettingStore(get_db())
    return InMemorySettingStore()


def build_user_store(config: Settings) -> UserStore:
    if config.store_backend == "sql":
        from common.db.sql.connection import get_session_factory
        from common.db.sql.user_repository import SQLUserStore
        return SQLUserStore(get_session_factory())
    if config.store_backend == "mongo":
        from common.db.nosql.connection import get_db
        from common.db.nosql.user_repository import MongoUserStore
        return MongoUserStore(get_db())
    return InMemoryUserStore()


def build_link_cache(config: Settings) -> Optional[LinkCache]:
    if not config.cache_enabled:
        return None
    return LinkCache(
        RedisClient(),
        ttl_seconds=config.cache_ttl_seconds,
        tombstone_seconds=config.cache_tombstone_seconds,
    )


async def init_stores(config: Settings, setting_store: SettingStore, user_store: Optional[UserStore] = None) -> None:
    """Create tables / seed settings and the bootstrap admin for the configured backend."""
    from common.db.sql.init_db import init_database, seed_admin_user, seed_default_settings

    if config.store_backend == "sql":
        await init_database(setting_store=setting_store, user_store=user_store)
        return
    if config.store_backend == "mongo":
        from common.db.nosql.connection import ensure_indexes, get_db
        await ensure_indexes(get_db())
    await seed_default_settings(setting_store)
    if user_store is not None:
        await seed_admin_user(user_store)


async def close_stores(config: Settings, cache: Optional[LinkCache] = None) -> None:
    if cache is not None:
        await cache.close()
    if config.store_backend == "sql":
        from common.db.sql.connection import close_engine
        await close_engine()
    elif config.store_backend == "mongo":
        from common.db.nosql.connection import close_mongo_connection
        await close_mongo_connection()


# --- FastAPI dependencies ---
def get_link_store(request: Request) -> LinkStore:
    return request.app.state.link_store


def get_setting_store(request: Request) -> SettingStore:
    return request.app.state.setting_store


def get_link_cache(request: Request) -> Optional[LinkCache]:
    return getattr(request.app.state, "link_cache", None)


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store
