from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from marketplace.schemas.common import Metadata, id_field


class ConversationCreate(BaseModel):

    type: Literal["direct", "contact"] = "direct"
    participant_ids: List[str] = Field(min_length=1)
    metadata: Metadata = Field(default_factory=dict)
    initial_message: Optional[str] = None


class DirectConversationRequest(BaseModel):

    other_user_id: str
    metadata: Metadata = Field(default_factory=dict)


class LastMessagePublic(BaseModel):

    content: str
    sender_id: str
    sender_name: str
    created_at: datetime
    type: str


class ParticipantDetailsPublic(BaseModel):

    display_name: str
    photo_url: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    company_id: Optional[str] = None
    company_name: Optional[str] = None


class ConversationPublic(BaseModel):

    id: str = id_field()
    type: str
    participants: List[str]
    participant_details: Dict[str, ParticipantDetailsPublic] = Field(default_factory=dict)
    created_by: Optional[str] = None
    last_message: Optional[LastMessagePublic] = None
    unread_count: Dict[str, int] = Field(default_factory=dict)
    metadata: Metadata = Field(default_factory=dict)
    created_at: datetime
    updated_at: Optional[datetime] = None


class ContactInquiryCreate(BaseModel):

    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    subject: Optional[str] = Field(default=None, max_length=200)
    message: str = Field(min_length=1)
    tag: Literal["contact", "advertising"] = "contact"
