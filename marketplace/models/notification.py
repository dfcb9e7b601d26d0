from datetime import datetime
from typing import Dict, TypedDict

from marketplace.models.conversation import MetadataValue


class NotificationDocument(TypedDict, total=False):
    _id: str
    recipient_id: str
    type: str
    title: str
    payload: Dict[str, MetadataValue]
    read: bool
    # "<event id>:<recipient id>", unique per recipient row
    dedupe_key: str
    created_at: datetime
