import asyncio
import logging
from typing import List, Optional

from common.core.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from common.db.base import UserStore
from common.models.schemas import User, UserCreate, UserRead, UserUpdate
from common.utils.passwords import hash_password, verify_password

logger = logging.getLogger(__name__)


def to_user_read(user: User) -> UserRead:
    return UserRead.model_validate(user)


class UserService:
    """
    Accounts that may use the management API.

    Users are deactivated, never deleted. A deactivated user cannot log in
    and its tokens are refused. bcrypt calls run in a worker thread.
    """

    def __init__(self, store: UserStore):
        self.store = store

    async def list_users(self) -> List[User]:
        return await self.store.list_all()

    async def get_user(self, user_id: str) -> User:
        user = await self.store.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def _check_available(self, username: Optional[str], email: Optional[str], user_id: str = None) -> None:
        if username is not None:
            existing = await self.store.get_by_username(username)
            if existing is not None and existing.id != user_id:
                raise ConflictError("Username already exists")
        if email is not None:
            existing = await self.store.get_by_email(email)
            if existing is not None and existing.id != user_id:
                raise ConflictError("Email already exists")

    async def create_user(self, payload: UserCreate) -> User:
        await self._check_available(payload.username, payload.email)
        password_hash = await asyncio.to_thread(hash_password, payload.password)
        user = await self.store.put(User(
            username=payload.username,
            email=payload.email,
            name=payload.name,
            password_hash=password_hash,
        ))
        logger.info(f"User created: {user.username}")
        return user

    async def update_user(self, user_id: str, payload: UserUpdate, acting_user: Optional[User] = None) -> User:
        changes = payload.changes()
        if acting_user is not None and acting_user.id == user_id and changes.get("is_active") is False:
            raise ValidationError("You cannot deactivate your own account")
        await self._check_available(changes.get("username"), changes.get("email"), user_id)
        user = await self.store.update(user_id, changes)
        if user is None:
            raise NotFoundError("User not found")
        logger.info(f"User updated: {user.username}")
        return user

    async def deactivate_user(self, user_id: str, acting_user: Optional[User] = None) -> User:
        if acting_user is not None and acting_user.id == user_id:
            raise ValidationError("You cannot deactivate your own account")
        user = await self.store.update(user_id, {"is_active": False})
        if user is None:
            raise NotFoundError("User not found")
        logger.info(f"User deactivated: {user.username}")
        return user

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> User:
        user = await self.get_user(user_id)
        if not await asyncio.to_thread(verify_password, current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")
        password_hash = await asyncio.to_thread(hash_password, new_password)
        updated = await self.store.update(user_id, {"password_hash": password_hash})
        logger.info(f"Password changed for user: {user.username}")
        return updated

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        user = await self.store.get_by_username(username or "")
        if user is None or not user.is_active:
            return None
        if not await asyncio.to_thread(verify_password, password, user.password_hash):
            return None
        return user
