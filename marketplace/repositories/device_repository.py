from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from marketplace.core.constants import DEVICES
from marketplace.database.errors import translate_store_errors
from marketplace.models.device import DeviceDocument


class DeviceRepository:
    """Push tokens per user, read by the push dispatcher."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db[DEVICES]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("user_id", ASCENDING), ("platform", ASCENDING)])
        await self.collection.create_index([("token", ASCENDING)], unique=True)

    @translate_store_errors
    async def register(self, user_id: str, platform: str, token: str) -> DeviceDocument:
        # a token moves with the device, so re-registering under another user reassigns it
        await self.collection.update_one(
            {"token": token},
            {"$set": {"user_id": user_id, "platform": platform, "last_seen_at": datetime.now(timezone.utc)}},
            upsert=True,
        )
        return {"user_id": user_id, "platform": platform, "token": token}

    @translate_store_errors
    async def get_tokens(self, user_id: str, platform: Optional[str] = None) -> List[str]:
        query: Dict[str, Any] = {"user_id": user_id}
        if platform:
            query["platform"] = platform
        items = await self.collection.find(query).to_list(length=100)
        return [it["token"] for it in items]

    @translate_store_errors
    async def remove_token(self, token: str) -> bool:
        result = await self.collection.delete_one({"token": token})
        return result.deleted_count > 0
