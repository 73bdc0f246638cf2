import logging
from functools import partial, wraps
from typing import Any, Callable, Dict, List, Optional

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError

from common.core.errors import ConflictError, StoreUnavailableError
from common.db.base import LinkStore, SettingStore
from common.db.nosql.connection import ping as ping_mongo
from common.models.schemas import Link, Setting, utcnow

logger = logging.getLogger(__name__)


def translate_mongo_errors(func: Callable = None, *, conflict_message: str = "Slug already exists") -> Callable:
    if func is None:
        return partial(translate_mongo_errors, conflict_message=conflict_message)

    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except DuplicateKeyError:
            raise ConflictError(conflict_message)
        except ConnectionFailure as e:
            logger.error(f"MongoDB store error in {func.__name__}: {e}")
            raise StoreUnavailableError(f"MongoDB store unavailable: {e.__class__.__name__}")
    return wrapper


def _to_document(link: Link) -> dict:
    document = link.model_dump(exclude={"slug"})
    document["_id"] = link.slug
    if link.utm_params is not None:
        document["utm_params"] = link.utm_params.as_dict()
    return document


def _to_link(document: dict) -> Link:
    data = dict(document)
    data["slug"] = data.pop("_id")
    return Link.model_validate(data)


class MongoLinkStore(LinkStore):
    """
    Link store over a single ``links`` collection keyed by ``_id = slug``.
    The primary key doubles as the uniqueness guard for concurrent creates.
    """

    name = "mongo"

    def __init__(self, db):
        self.db = db
        self.collection = db.links

    @translate_mongo_errors
    async def get(self, slug: str, include_inactive: bool = False) -> Optional[Link]:
        query = {"_id": slug}
        if not include_inactive:
            query["is_active"] = True
        document = await self.collection.find_one(query)
        return _to_link(document) if document else None

    @translate_mongo_errors
    async def put(self, link: Link) -> Link:
        now = utcnow()
        stored = link.model_copy(update={"created_at": now, "updated_at": now, "click_count": 0})
        await self.collection.insert_one(_to_document(stored))
        logger.info(f"Inserted link document: {link.slug}")
        return stored

    @translate_mongo_errors
    async def update(self, slug: str, changes: Dict[str, Any]) -> Optional[Link]:
        values = {}
        for field, value in changes.items():
            if field == "slug":
                continue
            if field == "utm_params":
                value = value.as_dict() if value is not None else None
            values[field] = value
        values["updated_at"] = utcnow()

        document = await self.collection.find_one_and_update(
            {"_id": slug},
            {"$set": values},
            return_document=ReturnDocument.AFTER,
        )
        return _to_link(document) if document else None

    @translate_mongo_errors
    async def soft_delete(self, slug: str) -> bool:
        result = await self.collection.update_one(
            {"_id": slug, "is_active": True},
            {"$set": {"is_active": False, "updated_at": utcnow()}},
        )
        return result.matched_count > 0

    @translate_mongo_errors
    async def exists(self, slug: str) -> bool:
        return await self.collection.count_documents({"_id": slug}, limit=1) > 0

    @translate_mongo_errors
    async def list_active(self) -> List[Link]:
        return await self._list({"is_active": True})

    @translate_mongo_errors
    async def list_all(self) -> List[Link]:
        return await self._list({})

    async def _list(self, query: dict) -> List[Link]:
        cursor = self.collection.find(query).sort("created_at", DESCENDING)
        return [_to_link(document) for document in await cursor.to_list(length=None)]

    @translate_mongo_errors
    async def increment_clicks(self, slug: str) -> None:
        await self.collection.update_one({"_id": slug, "is_active": True}, {"$inc": {"click_count": 1}})

    async def ping(self) -> bool:
        return await ping_mongo(self.db)


class MongoSettingStore(SettingStore):

    name = "mongo"

    def __init__(self, db):
        self.collection = db.settings

    @translate_mongo_errors
    async def get(self, key: str) -> Optional[Setting]:
        document = await self.collection.find_one({"_id": key})
        return self._to_setting(document) if document else None

    @translate_mongo_errors
    async def get_all(self) -> List[Setting]:
        cursor = self.collection.find({}).sort("_id", 1)
        return [self._to_setting(document) for document in await cursor.to_list(length=None)]

    @translate_mongo_errors
    async def upsert(self, key: str, value: Any, description: Optional[str] = None) -> Setting:
        values = {"value": value, "updated_at": utcnow()}
        if description is not None:
            values["description"] = description
        document = await self.collection.find_one_and_update(
            {"_id": key},
            {"$set": values},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_setting(document)

    @staticmethod
    def _to_setting(document: dict) -> Setting:
        return Setting(
            key=document["_id"],
            value=document.get("value"),
            description=document.get("description"),
            updated_at=document.get("updated_at") or utcnow(),
        )
