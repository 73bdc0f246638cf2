from fastapi import APIRouter, Depends, status

from app.auth import require_auth
from app.dependencies import get_domain_service
from app.services.settings_service import DomainService
from common.models.schemas import DomainCreate

domains_router = APIRouter(prefix="/domains", dependencies=[Depends(require_auth)])


@domains_router.get("")
async def list_domains(service: DomainService = Depends(get_domain_service)):
    return {
        "success": True,
        "data": await service.list_domains(),
        "message": "Domains retrieved successfully",
    }


@domains_router.post("", status_code=status.HTTP_201_CREATED)
async def create_domain(payload: DomainCreate, service: DomainService = Depends(get_domain_service)):
    domain = await service.add_domain(payload.name, payload.is_default)
    return {"success": True, "data": domain, "message": "Domain created successfully"}


@domains_router.delete("/{name}")
async def delete_domain(name: str, service: DomainService = Depends(get_domain_service)):
    await service.remove_domain(name)
    return {"success": True, "message": "Domain deleted successfully"}


@domains_router.post("/{name}/default")
async def set_default_domain(name: str, service: DomainService = Depends(get_domain_service)):
    domain = await service.set_default(name)
    return {"success": True, "data": domain, "message": "Default domain set successfully"}
