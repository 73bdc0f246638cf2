import copy
import logging
from typing import Any, Dict, List, Optional

from common.core.errors import ConflictError
from common.db.base import LinkStore, SettingStore, UserStore
from common.models.schemas import Link, Setting, User, utcnow

logger = logging.getLogger(__name__)


class InMemoryLinkStore(LinkStore):
    """Process-local link map, used in tests and as the fallback store."""

    name = "memory"

    def __init__(self):
        self._links: Dict[str, Link] = {}

    async def get(self, slug: str, include_inactive: bool = False) -> Optional[Link]:
        link = self._links.get(slug)
        if link is None or (not link.is_active and not include_inactive):
            return None
        return link.model_copy(deep=True)

    async def put(self, link: Link) -> Link:
        if link.slug in self._links:
            raise ConflictError("Slug already exists")
        now = utcnow()
        stored = link.model_copy(deep=True, update={"created_at": now, "updated_at": now, "click_count": 0})
        self._links[link.slug] = stored
        return stored.model_copy(deep=True)

    async def update(self, slug: str, changes: Dict[str, Any]) -> Optional[Link]:
        link = self._links.get(slug)
        if link is None:
            return None
        changes = {key: copy.deepcopy(value) for key, value in changes.items() if key != "slug"}
        changes["updated_at"] = utcnow()
        updated = link.model_copy(update=changes)
        self._links[slug] = updated
        return updated.model_copy(deep=True)

    async def soft_delete(self, slug: str) -> bool:
        link = self._links.get(slug)
        if link is None or not link.is_active:
            return False
        self._links[slug] = link.model_copy(update={"is_active": False, "updated_at": utcnow()})
        return True

    async def exists(self, slug: str) -> bool:
        return slug in self._links

    async def list_active(self) -> List[Link]:
        return [link for link in await self.list_all() if link.is_active]

    async def list_all(self) -> List[Link]:
        links = sorted(self._links.values(), key=lambda link: link.created_at, reverse=True)
        return [link.model_copy(deep=True) for link in links]

    async def increment_clicks(self, slug: str) -> None:
        link = self._links.get(slug)
        if link is not None and link.is_active:
            self._links[slug] = link.model_copy(update={"click_count": link.click_count + 1})


class InMemorySettingStore(SettingStore):

    name = "memory"

    def __init__(self):
        self._settings: Dict[str, Setting] = {}

    async def get(self, key: str) -> Optional[Setting]:
        setting = self._settings.get(key)
        return setting.model_copy(deep=True) if setting else None

    async def get_all(self) -> List[Setting]:
        return [self._settings[key].model_copy(deep=True) for key in sorted(self._settings)]

    async def upsert(self, key: str, value: Any, description: Optional[str] = None) -> Setting:
        existing = self._settings.get(key)
        if description is None and existing is not None:
            description = existing.description
        setting = Setting(key=key, value=copy.deepcopy(value), description=description, updated_at=utcnow())
        self._settings[key] = setting
        return setting.model_copy(deep=True)


class InMemoryUserStore(UserStore):

    name = "memory"

    def __init__(self):
        self._users: Dict[str, User] = {}

    def _check_unique(self, username: str, email: str, user_id: str = None) -> None:
        for user in self._users.values():
            if user.id == user_id:
                continue
            if user.username == username:
                raise ConflictError("Username already exists")
            if user.email == email:
                raise ConflictError("Email already exists")

    async def get(self, user_id: str) -> Optional[User]:
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    async def get_by_username(self, username: str) -> Optional[User]:
        return next((user.model_copy() for user in self._users.values() if user.username == username), None)

    async def get_by_email(self, email: str) -> Optional[User]:
        return next((user.model_copy() for user in self._users.values() if user.email == email), None)

    async def list_all(self) -> List[User]:
        return [user.model_copy() for user in sorted(self._users.values(), key=lambda user: user.created_at)]

    async def put(self, user: User) -> User:
        if user.id in self._users:
            raise ConflictError("User already exists")
        self._check_unique(user.username, user.email)
        now = utcnow()
        stored = user.model_copy(update={"created_at": now, "updated_at": now})
        self._users[user.id] = stored
        return stored.model_copy()

    async def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[User]:
        user = self._users.get(user_id)
        if user is None:
            return None
        changes = {key: value for key, value in changes.items() if key not in ("id", "created_at")}
        self._check_unique(changes.get("username", user.username), changes.get("email", user.email), user_id)
        changes["updated_at"] = utcnow()
        updated = user.model_copy(update=changes)
        self._users[user_id] = updated
        return updated.model_copy()

    async def count(self) -> int:
        return len(self._users)
