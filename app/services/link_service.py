import logging
from typing import List, Optional

from common.core.config import settings
from common.core.errors import ConflictError, NotFoundError, ValidationError
from common.core.redis_client import LinkCache
from common.db.base import LinkStore
from common.models.schemas import Link, LinkCreate, LinkRead, LinkUpdate
from common.utils.slugs import SlugGenerator, is_valid_slug

logger = logging.getLogger(__name__)


def ensure_valid_slug(slug: str) -> str:
    if not is_valid_slug(slug):
        raise ValidationError("Invalid slug format")
    return slug


def build_short_url(link: Link, base_url: Optional[str] = None) -> str:
    base_url = (base_url or settings.base_url).rstrip("/")
    if link.domain:
        scheme = base_url.split("://", 1)[0] if "://" in base_url else "https"
        return f"{scheme}://{link.domain}/{link.slug}"
    return f"{base_url}/{link.slug}"


def to_read_model(link: Link) -> LinkRead:
    return LinkRead(**link.model_dump(), short_url=build_short_url(link))


class LinkService:
    """
    Create / read / update / soft-delete over a LinkStore.
    Request models arrive validated; everything here runs after validation.
    """

    def __init__(
        self,
        store: LinkStore,
        cache: Optional[LinkCache] = None,
        slug_generator: Optional[SlugGenerator] = None,
    ):
        self.store = store
        self.cache = cache
        self.slug_generator = slug_generator or SlugGenerator(length=settings.slug_length)

    async def create_link(self, payload: LinkCreate, default_domain: Optional[str] = None) -> Link:
        if payload.slug:
            slug = payload.slug
            if await self.store.exists(slug):
                raise ConflictError("Slug already exists")
        else:
            slug = await self.slug_generator.generate(self.store.exists)

        link = Link(
            slug=slug,
            url=payload.url,
            domain=payload.domain or default_domain,
            utm_params=payload.utm_params if payload.utm_params and payload.utm_params.as_dict() else None,
            tags=payload.tags or [],
            description=payload.description,
            expires_at=payload.expires_at,
            is_active=True,
        )
        created = await self.store.put(link)
        logger.info(f"Link created: {created.slug} -> {created.url}")
        return created

    async def get_link(self, slug: str) -> Link:
        ensure_valid_slug(slug)
        link = await self.store.get(slug, include_inactive=True)
        if link is None:
            raise NotFoundError("Link not found")
        return link

    async def list_links(self, include_inactive: bool = False, tag: Optional[str] = None) -> List[Link]:
        links = await (self.store.list_all() if include_inactive else self.store.list_active())
        if tag:
            links = [link for link in links if tag in link.tags]
        return links

    async def update_link(self, slug: str, payload: LinkUpdate) -> Link:
        ensure_valid_slug(slug)
        changes = payload.changes()
        if not changes:
            raise ValidationError("No fields to update")
        if "utm_params" in changes and changes["utm_params"] is not None and not changes["utm_params"].as_dict():
            changes["utm_params"] = None

        updated = await self.store.update(slug, changes)
        if updated is None:
            raise NotFoundError("Link not found")
        await self._invalidate(slug)
        logger.info(f"Link updated: {slug} ({', '.join(sorted(changes))})")
        return updated

    async def delete_link(self, slug: str) -> None:
        ensure_valid_slug(slug)
        if not await self.store.soft_delete(slug):
            raise NotFoundError("Link not found")
        await self._invalidate(slug)
        logger.info(f"Link soft-deleted: {slug}")

    async def slug_exists(self, slug: str) -> bool:
        ensure_valid_slug(slug)
        return await self.store.exists(slug)

    async def _invalidate(self, slug: str) -> None:
        if self.cache is not None:
            await self.cache.invalidate(slug)
