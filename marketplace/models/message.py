from datetime import datetime
from typing import Dict, List, Literal, TypedDict

from marketplace.models.conversation import MetadataValue

MessageType = Literal["text", "contact_inquiry"]


class MessageDocument(TypedDict, total=False):
    _id: str
    conversation_id: str
    sender_id: str
    sender_name: str
    content: str
    type: MessageType
    metadata: Dict[str, MetadataValue]
    # grows only, starts as [sender_id]
    read_by: List[str]
    created_at: datetime
