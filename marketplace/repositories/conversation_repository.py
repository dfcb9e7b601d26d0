from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from marketplace.core.constants import CONVERSATIONS
from marketplace.database.errors import translate_store_errors
from marketplace.database.ids import normalize, to_object_id
from marketplace.models.conversation import ConversationDocument, LastMessageSnapshot, ParticipantDetails
from marketplace.utils.realtime_bus import notify_change


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db[CONVERSATIONS]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("participants", ASCENDING)])
        await self.collection.create_index([("updated_at", DESCENDING)])

    @translate_store_errors
    async def create(
        self,
        type: str,
        participants: List[str],
        created_by: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        participant_details: Optional[Dict[str, ParticipantDetails]] = None,
    ) -> ConversationDocument:
        now = datetime.now(timezone.utc)
        doc: Dict[str, Any] = {
            "type": type,
            "participants": list(participants),
            "participant_details": dict(participant_details or {}),
            "created_by": created_by,
            "last_message": None,
            "unread_count": {},
            "metadata": dict(metadata or {}),
            "created_at": now,
            "updated_at": now,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = str(result.inserted_id)
        await notify_change(CONVERSATIONS, doc["_id"], doc["_id"])
        return doc

    @translate_store_errors
    async def get_by_id(self, conversation_id: str) -> Optional[ConversationDocument]:
        oid = to_object_id(conversation_id)
        if oid is None:
            return None
        return normalize(await self.collection.find_one({"_id": oid}))

    @translate_store_errors
    async def find_direct(
        self,
        user_a: str,
        user_b: str,
        product_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Optional[ConversationDocument]:
        query: Dict[str, Any] = {
            "type": "direct",
            "participants": {"$all": [user_a, user_b], "$size": 2},
        }
        # a product or RFQ thread is separate from the plain direct thread
        query["metadata.product_id"] = product_id
        query["metadata.request_id"] = request_id
        return normalize(await self.collection.find_one(query))

    @translate_store_errors
    async def list_for_user(self, user_id: str, limit: int = 50) -> List[ConversationDocument]:
        cursor = self.collection.find({"participants": user_id}).sort([("updated_at", DESCENDING), ("_id", DESCENDING)]).limit(limit)
        items = await cursor.to_list(length=limit)
        return [normalize(it) for it in items]

    @translate_store_errors
    async def update_last_message(self, conversation_id: str, snapshot: LastMessageSnapshot) -> bool:
        result = await self.collection.update_one(
            {"_id": to_object_id(conversation_id)},
            {"$set": {"last_message": dict(snapshot), "updated_at": datetime.now(timezone.utc)}},
        )
        await notify_change(CONVERSATIONS, conversation_id, conversation_id)
        return bool(result.matched_count)

    @translate_store_errors
    async def increment_unread(self, conversation_id: str, user_id: str, amount: int = 1) -> bool:
        # $inc is applied server side, concurrent increments and resets never lose updates
        result = await self.collection.update_one(
            {"_id": to_object_id(conversation_id), "participants": user_id},
            {"$inc": {f"unread_count.{user_id}": amount}},
        )
        await notify_change(CONVERSATIONS, conversation_id, conversation_id)
        return bool(result.matched_count)

    @translate_store_errors
    async def reset_unread(self, conversation_id: str, user_id: str) -> bool:
        # only participants get a counter key
        result = await self.collection.update_one(
            {"_id": to_object_id(conversation_id), "participants": user_id},
            {"$set": {f"unread_count.{user_id}": 0}},
        )
        await notify_change(CONVERSATIONS, conversation_id, conversation_id)
        return bool(result.matched_count)
