from typing import Dict

from fastapi import APIRouter, Depends

from app.auth import require_auth
from app.dependencies import get_settings_service
from app.services.settings_service import SettingsService
from common.models.schemas import SettingUpdate, User

settings_router = APIRouter(prefix="/settings")


@settings_router.get("")
async def get_settings(service: SettingsService = Depends(get_settings_service)):
    return {
        "success": True,
        "data": await service.get_all(),
        "message": "Settings retrieved successfully",
    }


@settings_router.get("/{key}")
async def get_setting(key: str, service: SettingsService = Depends(get_settings_service)):
    setting = await service.get(key)
    return {
        "success": True,
        "data": {key: setting.value},
        "message": "Setting retrieved successfully",
    }


@settings_router.put("/{key}")
async def update_setting(
    key: str,
    payload: SettingUpdate,
    service: SettingsService = Depends(get_settings_service),
    user: User = Depends(require_auth),
):
    setting = await service.update(key, payload.value, payload.description)
    return {
        "success": True,
        "data": setting,
        "message": f"Setting '{key}' updated successfully",
    }


@settings_router.put("")
async def update_settings(
    payload: Dict[str, SettingUpdate],
    service: SettingsService = Depends(get_settings_service),
    user: User = Depends(require_auth),
):
    updated = await service.update_many(payload)
    return {
        "success": True,
        "message": f"{len(updated)} settings updated successfully",
    }
