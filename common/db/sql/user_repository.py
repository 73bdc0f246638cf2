import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select

from common.db.base import UserStore
from common.db.sql.link_repository import translate_db_errors
from common.db.sql.models import UserRecord
from common.models.schemas import User, utcnow

logger = logging.getLogger(__name__)

user_db_errors = translate_db_errors(conflict_message="Username or email already exists")


class SQLUserStore(UserStore):
    """User store backed by the ``users`` table."""

    name = "sql"

    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def _first(self, *criteria) -> Optional[User]:
        async with self._session_factory() as session:
            result = await session.execute(select(UserRecord).where(*criteria))
            record = result.scalars().first()
            return record.to_user() if record else None

    @user_db_errors
    async def get(self, user_id: str) -> Optional[User]:
        return await self._first(UserRecord.id == user_id)

    @user_db_errors
    async def get_by_username(self, username: str) -> Optional[User]:
        return await self._first(UserRecord.username == username)

    @user_db_errors
    async def get_by_email(self, email: str) -> Optional[User]:
        return await self._first(UserRecord.email == email)

    @user_db_errors
    async def list_all(self) -> List[User]:
        async with self._session_factory() as session:
            result = await session.execute(select(UserRecord).order_by(UserRecord.created_at, UserRecord.username))
            return [record.to_user() for record in result.scalars().all()]

    @user_db_errors
    async def put(self, user: User) -> User:
        async with self._session_factory() as session:
            record = UserRecord.from_user(user)
            now = utcnow()
            record.created_at = now
            record.updated_at = now
            session.add(record)
            try:
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            logger.info(f"Inserted user row: {user.username}")
            return record.to_user()

    @user_db_errors
    async def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[User]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserRecord).where(UserRecord.id == user_id).with_for_update()
            )
            record = result.scalars().first()
            if record is None:
                return None

            for field, value in changes.items():
                if field not in ("id", "created_at"):
                    setattr(record, field, value)
            record.updated_at = utcnow()

            try:
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            return record.to_user()

    @user_db_errors
    async def count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(UserRecord))
            return result.scalar() or 0
