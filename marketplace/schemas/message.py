from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, Field

from marketplace.schemas.common import Metadata, id_field


class MessageCreate(BaseModel):

    # length is checked after trimming by the service
    content: str
    type: Literal["text", "contact_inquiry"] = "text"
    metadata: Metadata = Field(default_factory=dict)


class MessagePublic(BaseModel):

    id: str = id_field()
    conversation_id: str
    sender_id: str
    sender_name: str
    content: str
    type: str
    metadata: Metadata = Field(default_factory=dict)
    read_by: List[str]
    created_at: datetime
