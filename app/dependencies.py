from fastapi import Depends

from app.services.link_service import LinkService
from app.services.settings_service import DomainService, SettingsService
from app.services.user_service import UserService
from common.db.stores import get_link_cache, get_link_store, get_setting_store, get_user_store


def get_link_service(store=Depends(get_link_store), cache=Depends(get_link_cache)) -> LinkService:
    return LinkService(store, cache)


def get_settings_service(store=Depends(get_setting_store)) -> SettingsService:
    return SettingsService(store)


def get_domain_service(store=Depends(get_setting_store)) -> DomainService:
    return DomainService(store)


def get_user_service(store=Depends(get_user_store)) -> UserService:
    return UserService(store)
