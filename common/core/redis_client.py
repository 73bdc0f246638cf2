import logging
from typing import Optional

from pydantic import ValidationError as SchemaError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from common.core.config import settings
from common.models.schemas import Link

logger = logging.getLogger(__name__)


class RedisClient:
    def __init__(self, redis_client: Optional[Redis] = None) -> None:
        self.redis_client = redis_client or Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password if settings.redis_password else None,
            db=0,
            decode_responses=True,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_socket_timeout,
        )

    async def get(self, key: str) -> Optional[str]:
        return await self.redis_client.get(key)

    async def set(self, key: str, value: str, expires_in: int = None, only_if_missing: bool = False) -> bool:
        return bool(await self.redis_client.set(key, value, ex=expires_in, nx=only_if_missing))

    async def ping(self) -> bool:
        return bool(await self.redis_client.ping())

    async def close(self) -> None:
        await self.redis_client.aclose()


class LinkCache:
    """
    Read-through cache of active links for the redirect path.

    Cached snapshots are only a shortcut: expiry is still checked on every
    redirect, and the management API drops the entry on update or delete.
    Redis failures degrade to a cache miss.

    Invalidation leaves a short-lived tombstone instead of deleting the key.
    Snapshots are written with ``SET NX``, so a redirect that read the store
    before an update or delete cannot put its stale copy back while the
    tombstone lives. ``tombstone_seconds`` must outlast the redirect lookup
    timeout.
    """

    prefix = "link:"
    tombstone = "__invalidated__"

    def __init__(self, client: RedisClient, ttl_seconds: int = 1800, tombstone_seconds: int = 60):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.tombstone_seconds = tombstone_seconds

    async def get_link(self, slug: str) -> Optional[Link]:
        try:
            cached = await self.client.get(self.prefix + slug)
        except RedisError as e:
            logger.warning(f"Cache read failed for {slug}: {e}")
            return None
        if not cached or cached == self.tombstone:
            return None
        try:
            return Link.model_validate_json(cached)
        except SchemaError:
            logger.warning(f"Discarding malformed cache entry for {slug}")
            await self.invalidate(slug)
            return None

    async def set_link(self, link: Link) -> bool:
        """Cache ``link`` unless the key holds a snapshot or a tombstone already."""
        try:
            return await self.client.set(
                self.prefix + link.slug,
                link.model_dump_json(),
                expires_in=self.ttl_seconds,
                only_if_missing=True,
            )
        except RedisError as e:
            logger.warning(f"Cache write failed for {link.slug}: {e}")
            return False

    async def invalidate(self, slug: str) -> None:
        try:
            await self.client.set(self.prefix + slug, self.tombstone, expires_in=self.tombstone_seconds)
        except RedisError as e:
            logger.warning(f"Cache invalidation failed for {slug}: {e}")

    async def ping(self) -> bool:
        try:
            return await self.client.ping()
        except RedisError as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        await self.client.close()
