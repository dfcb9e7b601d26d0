from typing import Literal, Optional, TypedDict


class UserDocument(TypedDict, total=False):

    _id: str
    email: str
    display_name: Optional[str]
    photo_url: Optional[str]
    company_id: Optional[str]
    company_name: Optional[str]
    company_logo: Optional[str]
    role: Literal["user", "admin"]
    is_suspended: bool
    is_deleted: bool
