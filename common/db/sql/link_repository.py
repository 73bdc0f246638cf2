import logging
from functools import partial, wraps
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select, update, exists as sql_exists
from sqlalchemy.exc import IntegrityError, OperationalError, DBAPIError, InterfaceError, TimeoutError as PoolTimeoutError

from common.core.errors import ConflictError, StoreUnavailableError
from common.db.base import LinkStore, SettingStore
from common.db.sql.connection import check_sql_health
from common.db.sql.models import LinkRecord, SettingRecord
from common.models.schemas import Link, Setting, utcnow

logger = logging.getLogger(__name__)


def translate_db_errors(func: Callable = None, *, conflict_message: str = "Slug already exists") -> Callable:
    """
    Map SQLAlchemy failures onto the store error contract: unique violations
    become ConflictError, connection-level failures StoreUnavailableError.
    """
    if func is None:
        return partial(translate_db_errors, conflict_message=conflict_message)

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except IntegrityError as e:
            logger.info(f"Integrity error in {func.__name__}: {e.orig}")
            raise ConflictError(conflict_message)
        except (OperationalError, InterfaceError, PoolTimeoutError, DBAPIError, OSError) as e:
            logger.error(f"SQL store error in {func.__name__}: {e}")
            raise StoreUnavailableError(f"SQL store unavailable: {e.__class__.__name__}")
    return wrapper


class SQLLinkStore(LinkStore):
    """Link store backed by the ``links`` table."""

    name = "sql"

    def __init__(self, session_factory, engine=None):
        self._session_factory = session_factory
        self._engine = engine

    @translate_db_errors
    async def get(self, slug: str, include_inactive: bool = False) -> Optional[Link]:
        async with self._session_factory() as session:
            statement = select(LinkRecord).where(LinkRecord.slug == slug)
            if not include_inactive:
                statement = statement.where(LinkRecord.is_active.is_(True))
            result = await session.execute(statement)
            record = result.scalars().first()
            return record.to_link() if record else None

    @translate_db_errors
    async def put(self, link: Link) -> Link:
        async with self._session_factory() as session:
            record = LinkRecord.from_link(link)
            now = utcnow()
            record.created_at = now
            record.updated_at = now
            session.add(record)
            try:
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            logger.info(f"Inserted link row: {link.slug}")
            return record.to_link()

    @translate_db_errors
    async def update(self, slug: str, changes: Dict[str, Any]) -> Optional[Link]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(LinkRecord).where(LinkRecord.slug == slug).with_for_update()
            )
            record = result.scalars().first()
            if record is None:
                return None

            for field, value in changes.items():
                if field == "utm_params":
                    record.set_utm_params(value)
                elif field == "tags":
                    record.tags = list(value or [])
                elif field != "slug":
                    setattr(record, field, value)
            record.updated_at = utcnow()

            try:
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            return record.to_link()

    @translate_db_errors
    async def soft_delete(self, slug: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                update(LinkRecord)
                .where(LinkRecord.slug == slug, LinkRecord.is_active.is_(True))
                .values(is_active=False, updated_at=utcnow())
            )
            await session.commit()
            return (result.rowcount or 0) > 0

    @translate_db_errors
    async def exists(self, slug: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(select(sql_exists().where(LinkRecord.slug == slug)))
            return bool(result.scalar())

    @translate_db_errors
    async def list_active(self) -> List[Link]:
        return await self._list(active_only=True)

    @translate_db_errors
    async def list_all(self) -> List[Link]:
        return await self._list(active_only=False)

    async def _list(self, active_only: bool) -> List[Link]:
        async with self._session_factory() as session:
            statement = select(LinkRecord).order_by(LinkRecord.created_at.desc(), LinkRecord.id.desc())
            if active_only:
                statement = statement.where(LinkRecord.is_active.is_(True))
            result = await session.execute(statement)
            return [record.to_link() for record in result.scalars().all()]

    @translate_db_errors
    async def increment_clicks(self, slug: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(LinkRecord)
                .where(LinkRecord.slug == slug, LinkRecord.is_active.is_(True))
                .values(click_count=LinkRecord.click_count + 1)
            )
            await session.commit()

    async def ping(self) -> bool:
        return await check_sql_health(self._engine)


class SQLSettingStore(SettingStore):
    """Setting store backed by the ``settings`` table."""

    name = "sql"

    def __init__(self, session_factory):
        self._session_factory = session_factory

    @translate_db_errors
    async def get(self, key: str) -> Optional[Setting]:
        async with self._session_factory() as session:
            result = await session.execute(select(SettingRecord).where(SettingRecord.key == key))
            record = result.scalars().first()
            return record.to_setting() if record else None

    @translate_db_errors
    async def get_all(self) -> List[Setting]:
        async with self._session_factory() as session:
            result = await session.execute(select(SettingRecord).order_by(SettingRecord.key))
            return [record.to_setting() for record in result.scalars().all()]

    @translate_db_errors
    async def upsert(self, key: str, value: Any, description: Optional[str] = None) -> Setting:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SettingRecord).where(SettingRecord.key == key).with_for_update()
            )
            record = result.scalars().first()
            now = utcnow()
            if record is None:
                record = SettingRecord(key=key, value=value, description=description, created_at=now, updated_at=now)
                session.add(record)
            else:
                record.value = value
                if description is not None:
                    record.description = description
                record.updated_at = now
            await session.commit()
            return record.to_setting()
