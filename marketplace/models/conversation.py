from datetime import datetime
from typing import Dict, List, Literal, Optional, TypedDict, Union

ConversationType = Literal["direct", "contact"]
MetadataValue = Union[str, int, float, bool, None]


class LastMessageSnapshot(TypedDict):
    # display cache only, message history lives in conversations.messages
    content: str
    sender_id: str
    sender_name: str
    created_at: datetime
    type: str


class ParticipantDetails(TypedDict, total=False):
    display_name: str
    photo_url: Optional[str]
    email: Optional[str]
    role: Optional[str]
    company_id: Optional[str]
    company_name: Optional[str]


class ConversationDocument(TypedDict, total=False):
    _id: str
    type: ConversationType
    participants: List[str]
    # denormalised profile snapshot taken when the conversation is created
    participant_details: Dict[str, ParticipantDetails]
    created_by: Optional[str]
    last_message: Optional[LastMessageSnapshot]
    # per-user unread counters (user_id -> count), missing keys read as zero
    unread_count: Dict[str, int]
    metadata: Dict[str, MetadataValue]
    created_at: datetime
    updated_at: datetime
