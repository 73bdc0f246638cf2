"""
Storage interfaces.

A LinkStore maps slugs to Link records. Slugs are unique across active and
soft-deleted rows alike: ``put`` refuses any slug that ``exists`` reports,
and soft-deleted links can only come back through ``update``.

Implementations translate backend transport failures into
StoreUnavailableError and unique-key violations into ConflictError.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from common.models.schemas import Link, Setting, User


class LinkStore(ABC):
    name = "abstract"

    @abstractmethod
    async def get(self, slug: str, include_inactive: bool = False) -> Optional[Link]:
        ...

    @abstractmethod
    async def put(self, link: Link) -> Link:
        ...

    @abstractmethod
    async def update(self, slug: str, changes: Dict[str, Any]) -> Optional[Link]:
        ...

    @abstractmethod
    async def soft_delete(self, slug: str) -> bool:
        ...

    @abstractmethod
    async def exists(self, slug: str) -> bool:
        ...

    @abstractmethod
    async def list_active(self) -> List[Link]:
        ...

    @abstractmethod
    async def list_all(self) -> List[Link]:
        ...

    @abstractmethod
    async def increment_clicks(self, slug: str) -> None:
        ...

    async def ping(self) -> bool:
        return True


class SettingStore(ABC):
    name = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[Setting]:
        ...

    @abstractmethod
    async def get_all(self) -> List[Setting]:
        ...

    @abstractmethod
    async def upsert(self, key: str, value: Any, description: Optional[str] = None) -> Setting:
        """Insert or replace the value; a None description keeps the stored one."""
        ...


class UserStore(ABC):
    """
    Accounts keyed by ``id``. Usernames and emails are unique; ``put`` and
    ``update`` raise ConflictError when either collides with another user.
    Users are deactivated, never removed.
    """
    name = "abstract"

    @abstractmethod
    async def get(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    async def get_by_username(self, username: str) -> Optional[User]:
        ...

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    async def list_all(self) -> List[User]:
        ...

    @abstractmethod
    async def put(self, user: User) -> User:
        ...

    @abstractmethod
    async def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[User]:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...
