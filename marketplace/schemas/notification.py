from datetime import datetime

from pydantic import BaseModel, Field

from marketplace.schemas.common import Metadata, id_field


class NotificationPublic(BaseModel):

    id: str = id_field()
    recipient_id: str
    type: str
    title: str
    payload: Metadata = Field(default_factory=dict)
    read: bool = False
    created_at: datetime
