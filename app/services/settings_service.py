import re
import logging
from typing import Any, Dict, List, Optional

from common.core.config import settings
from common.core.errors import ConflictError, NotFoundError, StoreUnavailableError, ValidationError
from common.db.base import SettingStore
from common.models.schemas import Domain, Setting, SettingUpdate
from common.utils.circuit_breaker import with_timeout

logger = logging.getLogger(__name__)

DOMAINS_KEY = "domains"
DEFAULT_DOMAIN_KEY = "default_domain"

# host name with an optional port, e.g. "go.example.com" or "localhost:8001"
DOMAIN_PATTERN = re.compile(
    r"(?=.{1,255}$)[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*(?::\d{1,5})?"
)


class SettingsService:

    def __init__(self, store: SettingStore):
        self.store = store

    async def get_all(self) -> Dict[str, dict]:
        return {
            setting.key: {"value": setting.value, "description": setting.description}
            for setting in await self.store.get_all()
        }

    async def get(self, key: str) -> Setting:
        setting = await self.store.get(key)
        if setting is None:
            raise NotFoundError(f"Setting '{key}' not found")
        return setting

    async def update(self, key: str, value: Any, description: Optional[str] = None) -> Setting:
        if not key.strip():
            raise ValidationError("Setting key may not be empty")
        setting = await self.store.upsert(key, value, description)
        logger.info(f"Setting updated: {key}")
        return setting

    async def update_many(self, updates: Dict[str, SettingUpdate]) -> List[Setting]:
        return [await self.update(key, update.value, update.description) for key, update in updates.items()]


class DomainService:
    """Domain list kept in the ``domains`` / ``default_domain`` settings."""

    def __init__(self, store: SettingStore):
        self.store = store

    async def _names(self) -> List[str]:
        setting = await self.store.get(DOMAINS_KEY)
        if setting is None or not isinstance(setting.value, list):
            return []
        return [str(name) for name in setting.value]

    async def get_default(self) -> Optional[str]:
        """Configured default domain; the static one while the setting store is down."""
        try:
            setting = await with_timeout(
                self.store.get(DEFAULT_DOMAIN_KEY),
                settings.store_timeout_seconds,
                operation="default domain lookup",
            )
        except StoreUnavailableError as e:
            logger.warning(f"Default domain lookup failed ({e.message}), using '{settings.default_domain}'")
            return settings.default_domain or None
        if setting is not None and setting.value:
            return str(setting.value)
        return settings.default_domain or None

    async def list_domains(self) -> List[Domain]:
        default = await self.get_default()
        return [Domain(name=name, is_default=name == default) for name in await self._names()]

    async def add_domain(self, name: str, is_default: bool = False) -> Domain:
        name = name.strip().lower()
        if not DOMAIN_PATTERN.fullmatch(name):
            raise ValidationError(f"Invalid domain name: '{name}'")

        names = await self._names()
        if name in names:
            raise ConflictError(f"Domain '{name}' already exists")
        await self.store.upsert(DOMAINS_KEY, names + [name])
        if is_default:
            await self.store.upsert(DEFAULT_DOMAIN_KEY, name)
        logger.info(f"Domain added: {name}")
        return Domain(name=name, is_default=is_default)

    async def remove_domain(self, name: str) -> None:
        name = name.strip().lower()
        names = await self._names()
        if name not in names:
            raise NotFoundError(f"Domain '{name}' not found")
        await self.store.upsert(DOMAINS_KEY, [existing for existing in names if existing != name])

        default = await self.store.get(DEFAULT_DOMAIN_KEY)
        if default is not None and default.value == name:
            await self.store.upsert(DEFAULT_DOMAIN_KEY, None)
        logger.info(f"Domain removed: {name}")

    async def set_default(self, name: str) -> Domain:
        name = name.strip().lower()
        if name not in await self._names():
            raise NotFoundError(f"Domain '{name}' not found")
        await self.store.upsert(DEFAULT_DOMAIN_KEY, name)
        return Domain(name=name, is_default=True)
