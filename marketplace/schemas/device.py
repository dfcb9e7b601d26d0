from typing import Literal

from pydantic import BaseModel, Field


class DeviceRegister(BaseModel):

    platform: Literal["fcm", "webpush"]
    token: str = Field(min_length=1)
