import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from app.dependencies import get_domain_service, get_link_service
from app.services.link_service import LinkService, to_read_model
from app.services.settings_service import DomainService
from common.core.errors import ShortenerError
from common.models.schemas import LinkCreate, LinkUpdate
from common.utils.slugs import is_valid_slug

logger = logging.getLogger(__name__)

links_router = APIRouter(prefix="/links")


@links_router.get("")
async def list_links(
    include_inactive: bool = Query(False, description="Include soft-deleted links"),
    tag: Optional[str] = Query(None, description="Only links carrying this tag"),
    service: LinkService = Depends(get_link_service),
):
    links = await service.list_links(include_inactive=include_inactive, tag=tag)
    return {
        "success": True,
        "data": [to_read_model(link) for link in links],
        "count": len(links),
    }


@links_router.post("", status_code=status.HTTP_201_CREATED)
async def create_link(
    payload: LinkCreate,
    service: LinkService = Depends(get_link_service),
    domains: DomainService = Depends(get_domain_service),
):
    default_domain = None if payload.domain else await domains.get_default()
    link = await service.create_link(payload, default_domain=default_domain)
    return {
        "success": True,
        "data": to_read_model(link),
        "message": "Short link created successfully",
    }


@links_router.get("/{slug}")
async def get_link(slug: str, service: LinkService = Depends(get_link_service)):
    link = await service.get_link(slug)
    return {"success": True, "data": to_read_model(link)}


@links_router.put("/{slug}")
async def update_link(slug: str, payload: LinkUpdate, service: LinkService = Depends(get_link_service)):
    link = await service.update_link(slug, payload)
    return {
        "success": True,
        "data": to_read_model(link),
        "message": "Link updated successfully",
    }


@links_router.delete("/{slug}")
async def delete_link(slug: str, service: LinkService = Depends(get_link_service)):
    await service.delete_link(slug)
    return {"success": True, "message": "Link deleted successfully"}


@links_router.head("/{slug}")
async def check_slug(slug: str, service: LinkService = Depends(get_link_service)):
    """Slug availability check: 200 when taken, 404 when free."""
    if not is_valid_slug(slug):
        return Response(status_code=status.HTTP_400_BAD_REQUEST)
    try:
        taken = await service.slug_exists(slug)
    except ShortenerError as e:
        logger.error(f"Error checking slug {slug}: {e.message}")
        return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(status_code=status.HTTP_200_OK if taken else status.HTTP_404_NOT_FOUND)
