import logging
from typing import NamedTuple, Optional

from common.core.errors import DisabledError, ExpiredError, NotFoundError, ValidationError
from common.core.redis_client import LinkCache
from common.db.base import LinkStore
from common.models.schemas import Link
from common.utils.circuit_breaker import with_timeout
from common.utils.slugs import is_valid_slug
from common.utils.urls import merge_utm_params

logger = logging.getLogger(__name__)


class Redirect(NamedTuple):
    link: Link
    location: str


class RedirectService:

    def __init__(self, store: LinkStore, cache: Optional[LinkCache] = None, timeout_seconds: float = 5.0):
        self.store = store
        self.cache = cache
        self.timeout_seconds = timeout_seconds

    async def _find_link(self, slug: str) -> Optional[Link]:
        """
        Look the slug up for a redirect.
        1. Check the Redis cache.
        2. If not cached, ask the store (active links only).
        3. Cache what the store returned.
        """
        if self.cache is not None:
            link = await self.cache.get_link(slug)
            if link is not None:
                logger.debug(f"Cache hit for {slug}")
                return link

        link = await with_timeout(
            self.store.get(slug),
            self.timeout_seconds,
            operation=f"redirect lookup for {slug}",
        )
        if link is not None and self.cache is not None:
            await self.cache.set_link(link)
        return link

    async def resolve(self, slug: str) -> Redirect:
        """
        Decide where ``slug`` redirects to.
        Raises ValidationError, NotFoundError, ExpiredError or DisabledError.
        """
        if not is_valid_slug(slug):
            raise ValidationError("The requested link format is invalid.")

        link = await self._find_link(slug)
        if link is None:
            logger.info(f"URL not found for slug: {slug}")
            raise NotFoundError("The requested short link does not exist or has been removed.")

        if not link.is_active:
            raise DisabledError()

        if link.is_expired():
            logger.info(f"Expired link requested: {slug}")
            raise ExpiredError()

        utm = link.utm_params.as_dict() if link.utm_params else None
        return Redirect(link=link, location=merge_utm_params(link.url, utm))

    async def record_click(self, slug: str) -> None:
        """Best-effort click counter, run after the response went out."""
        try:
            await self.store.increment_clicks(slug)
        except Exception:
            logger.exception(f"Failed to increment click count for {slug}")
