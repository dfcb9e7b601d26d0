from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from marketplace.core.constants import NOTIFICATIONS, USERS, nested_collection_name
from marketplace.database.errors import translate_store_errors
from marketplace.database.ids import normalize, to_object_id
from marketplace.models.notification import NotificationDocument
from marketplace.utils.realtime_bus import NOTIFICATIONS_CREATED, notify_change, publish_json

NOTIFICATIONS_COLLECTION = nested_collection_name(USERS, NOTIFICATIONS)


class NotificationRepository:
    """One row per (event, recipient); rows are scoped to a user by recipient_id."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db[NOTIFICATIONS_COLLECTION]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("dedupe_key", ASCENDING)], unique=True)
        await self.collection.create_index([("recipient_id", ASCENDING), ("created_at", DESCENDING)])

    @translate_store_errors
    async def create(
        self,
        recipient_id: str,
        type: str,
        title: str,
        payload: Dict[str, Any],
        event_id: str,
    ) -> NotificationDocument:
        dedupe_key = f"{event_id}:{recipient_id}"
        doc: Dict[str, Any] = {
            "recipient_id": recipient_id,
            "type": type,
            "title": title,
            "payload": dict(payload),
            "read": False,
            "dedupe_key": dedupe_key,
            "created_at": datetime.now(timezone.utc),
        }
        # a retried fan-out step finds the existing row instead of adding a second one
        result = await self.collection.update_one(
            {"dedupe_key": dedupe_key},
            {"$setOnInsert": doc},
            upsert=True,
        )
        if result.upserted_id is None:
            return normalize(await self.collection.find_one({"dedupe_key": dedupe_key}))
        doc["_id"] = str(result.upserted_id)
        await notify_change(NOTIFICATIONS_COLLECTION, recipient_id, doc["_id"])
        await publish_json(NOTIFICATIONS_CREATED, doc)
        return doc

    async def create_for_many(
        self,
        recipient_ids: List[str],
        type: str,
        title: str,
        payload: Dict[str, Any],
        event_id: str,
    ) -> List[NotificationDocument]:
        created = []
        for recipient_id in recipient_ids:
            created.append(await self.create(recipient_id, type, title, payload, event_id))
        return created

    @translate_store_errors
    async def get_by_id(self, recipient_id: str, notification_id: str) -> Optional[NotificationDocument]:
        oid = to_object_id(notification_id)
        if oid is None:
            return None
        return normalize(await self.collection.find_one({"_id": oid, "recipient_id": recipient_id}))

    @translate_store_errors
    async def list_for_user(self, recipient_id: str, limit: int = 50, unread_only: bool = False) -> List[NotificationDocument]:
        query: Dict[str, Any] = {"recipient_id": recipient_id}
        if unread_only:
            query["read"] = False
        cursor = self.collection.find(query).sort([("created_at", DESCENDING), ("_id", DESCENDING)]).limit(limit)
        items = await cursor.to_list(length=limit)
        return [normalize(it) for it in items]

    @translate_store_errors
    async def count_unread(self, recipient_id: str) -> int:
        return await self.collection.count_documents({"recipient_id": recipient_id, "read": False})

    @translate_store_errors
    async def mark_read(self, recipient_id: str, notification_id: str) -> bool:
        oid = to_object_id(notification_id)
        if oid is None:
            return False
        result = await self.collection.update_one(
            {"_id": oid, "recipient_id": recipient_id},
            {"$set": {"read": True}},
        )
        if result.modified_count:
            await notify_change(NOTIFICATIONS_COLLECTION, recipient_id, notification_id)
        return bool(result.matched_count)

    @translate_store_errors
    async def mark_all_read(self, recipient_id: str) -> int:
        result = await self.collection.update_many(
            {"recipient_id": recipient_id, "read": False},
            {"$set": {"read": True}},
        )
        if result.modified_count:
            await notify_change(NOTIFICATIONS_COLLECTION, recipient_id)
        return result.modified_count or 0
