import logging
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, ReturnDocument

from common.db.base import UserStore
from common.db.nosql.link_repository import translate_mongo_errors
from common.models.schemas import User, utcnow

logger = logging.getLogger(__name__)

user_mongo_errors = translate_mongo_errors(conflict_message="Username or email already exists")


def _to_document(user: User) -> dict:
    document = user.model_dump(exclude={"id"})
    document["_id"] = user.id
    return document


def _to_user(document: dict) -> User:
    data = dict(document)
    data["id"] = data.pop("_id")
    return User.model_validate(data)


class MongoUserStore(UserStore):
    """
    Users in a ``users`` collection keyed by ``_id = user id``; the unique
    username and email indexes come from ``ensure_indexes``.
    """

    name = "mongo"

    def __init__(self, db):
        self.collection = db.users

    @user_mongo_errors
    async def get(self, user_id: str) -> Optional[User]:
        document = await self.collection.find_one({"_id": user_id})
        return _to_user(document) if document else None

    @user_mongo_errors
    async def get_by_username(self, username: str) -> Optional[User]:
        document = await self.collection.find_one({"username": username})
        return _to_user(document) if document else None

    @user_mongo_errors
    async def get_by_email(self, email: str) -> Optional[User]:
        document = await self.collection.find_one({"email": email})
        return _to_user(document) if document else None

    @user_mongo_errors
    async def list_all(self) -> List[User]:
        cursor = self.collection.find({}).sort([("created_at", ASCENDING), ("username", ASCENDING)])
        return [_to_user(document) for document in await cursor.to_list(length=None)]

    @user_mongo_errors
    async def put(self, user: User) -> User:
        now = utcnow()
        stored = user.model_copy(update={"created_at": now, "updated_at": now})
        await self.collection.insert_one(_to_document(stored))
        logger.info(f"Inserted user document: {user.username}")
        return stored

    @user_mongo_errors
    async def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[User]:
        values = {field: value for field, value in changes.items() if field not in ("id", "created_at")}
        values["updated_at"] = utcnow()
        document = await self.collection.find_one_and_update(
            {"_id": user_id},
            {"$set": values},
            return_document=ReturnDocument.AFTER,
        )
        return _to_user(document) if document else None

    @user_mongo_errors
    async def count(self) -> int:
        return await self.collection.count_documents({})
