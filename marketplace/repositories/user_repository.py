from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from marketplace.core.constants import USERS
from marketplace.database.errors import translate_store_errors
from marketplace.database.ids import id_filter, normalize
from marketplace.models.user import UserDocument


class UserRepository:
    """Read side of the user directory; account management lives outside this service."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection(USERS)

    @translate_store_errors
    async def get_by_id(self, user_id: str) -> Optional[UserDocument]:
        return normalize(await self._collection.find_one(id_filter(user_id)))

    @translate_store_errors
    async def list_admin_ids(self) -> List[str]:
        cursor = self._collection.find(
            {"role": "admin", "is_suspended": {"$ne": True}, "is_deleted": {"$ne": True}},
            {"_id": 1},
        ).sort("_id", 1)
        return [str(doc["_id"]) async for doc in cursor]
