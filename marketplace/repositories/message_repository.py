from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from marketplace.core.constants import CONVERSATIONS, MESSAGES, nested_collection_name
from marketplace.database.errors import translate_store_errors
from marketplace.database.ids import normalize, to_object_id
from marketplace.models.message import MessageDocument
from marketplace.utils.realtime_bus import notify_change

MESSAGES_COLLECTION = nested_collection_name(CONVERSATIONS, MESSAGES)


class MessageRepository:
    """Messages live in their own collection, scoped to a conversation by conversation_id."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db[MESSAGES_COLLECTION]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("conversation_id", ASCENDING), ("created_at", ASCENDING)])

    @translate_store_errors
    async def create(
        self,
        conversation_id: str,
        sender_id: str,
        sender_name: str,
        content: str,
        type: str = "text",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MessageDocument:
        doc: Dict[str, Any] = {
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "sender_name": sender_name,
            "content": content,
            "type": type,
            "metadata": dict(metadata or {}),
            "read_by": [sender_id],
            "created_at": datetime.now(timezone.utc),
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        await notify_change(MESSAGES_COLLECTION, conversation_id, doc["_id"])
        return doc

    @translate_store_errors
    async def get_by_id(self, conversation_id: str, message_id: str) -> Optional[MessageDocument]:
        oid = to_object_id(message_id)
        if oid is None:
            return None
        return normalize(await self.collection.find_one({"_id": oid, "conversation_id": conversation_id}))

    @translate_store_errors
    async def list_by_conversation(self, conversation_id: str, limit: int = 100) -> List[MessageDocument]:
        cursor = self.collection.find({"conversation_id": conversation_id}).sort([("created_at", ASCENDING), ("_id", ASCENDING)]).limit(limit)
        items = await cursor.to_list(length=limit)
        return [normalize(it) for it in items]

    @translate_store_errors
    async def mark_all_read(self, conversation_id: str, user_id: str) -> int:
        result = await self.collection.update_many(
            {"conversation_id": conversation_id, "read_by": {"$ne": user_id}},
            {"$addToSet": {"read_by": user_id}},
        )
        if result.modified_count:
            await notify_change(MESSAGES_COLLECTION, conversation_id)
        return result.modified_count or 0
