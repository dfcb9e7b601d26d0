from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId


def to_object_id(value: Optional[str]) -> Optional[ObjectId]:
    if not value:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def id_filter(value: str) -> Dict[str, Any]:
    """Match documents whose _id is either the ObjectId or the raw string form of `value`."""
    oid = to_object_id(value)
    if oid is None:
        return {"_id": value}
    return {"_id": {"$in": [oid, value]}}


def normalize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is not None and "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc
