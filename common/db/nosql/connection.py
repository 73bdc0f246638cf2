"""
MongoDB client for the ``mongo`` store backend.

One motor client per process; the link and setting stores share its
database handle. Server selection fails fast so the fallback store can take
over while MongoDB is unreachable.
"""
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from common.core.config import settings

logger = logging.getLogger(__name__)

_client: AsyncIOMotorClient = None


def create_client(uri: str = None) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(
        uri or settings.mongo_uri,
        tz_aware=True,
        maxPoolSize=settings.mongo_max_pool_size,
        minPoolSize=settings.mongo_min_pool_size,
        maxIdleTimeMS=settings.mongo_max_idle_time_ms,
        serverSelectionTimeoutMS=int(settings.store_timeout_seconds * 1000),
        connectTimeoutMS=5000,
        appname=f"url_shortener_{settings.instance_id or 'default'}",
    )


def get_db() -> AsyncIOMotorDatabase:
    global _client
    if _client is None:
        _client = create_client()
        logger.info(f"MongoDB client initialized for database '{settings.mongo_db_name}'")
    return _client[settings.mongo_db_name]


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Listing indexes and user uniqueness; slugs and setting keys live in ``_id``."""
    await db.links.create_index([("is_active", ASCENDING), ("created_at", DESCENDING)])
    await db.links.create_index("tags")
    await db.users.create_index("username", unique=True)
    await db.users.create_index("email", unique=True)
    logger.info("MongoDB link and user indexes ensured")


async def ping(db: AsyncIOMotorDatabase = None) -> bool:
    try:
        await (db if db is not None else get_db()).command("ping")
        return True
    except Exception as e:
        logger.error(f"MongoDB ping failed: {e}")
        return False


async def close_mongo_connection():
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB connection closed")
