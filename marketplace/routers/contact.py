from typing import Optional

from fastapi import APIRouter, Depends, status

from marketplace.schemas.conversation import ContactInquiryCreate
from marketplace.services.conversation_service import ConversationService
from marketplace.utils.dependencies import get_conversation_service, get_optional_user


router = APIRouter(prefix="/contact", tags=["contact"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_contact_inquiry(body: ContactInquiryCreate, current_user: Optional[dict] = Depends(get_optional_user), service: ConversationService = Depends(get_conversation_service)):
    conversation, message = await service.send_contact_inquiry(
        name=body.name,
        email=body.email,
        subject=body.subject,
        message=body.message,
        user_id=current_user["_id"] if current_user else None,
        tag=body.tag,
    )
    return {"conversation_id": conversation["_id"], "message_id": message["_id"]}
