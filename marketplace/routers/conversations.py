from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from marketplace.schemas.conversation import ConversationCreate, ConversationPublic, DirectConversationRequest
from marketplace.schemas.message import MessageCreate, MessagePublic
from marketplace.services.conversation_service import ConversationService
from marketplace.services.message_service import MessageService
from marketplace.services.read_state_service import ReadStateService
from marketplace.utils.dependencies import (
    get_conversation_service,
    get_current_user,
    get_message_service,
    get_read_state_service,
)


router = APIRouter(prefix="/conversations", tags=["chat"])


async def _load_for_participant(conversation_id: str, current_user: dict, service: ConversationService) -> dict:
    conversation = await service.get_by_id(conversation_id)
    if current_user["_id"] not in conversation["participants"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a participant of this conversation")
    return conversation


@router.post("", response_model=ConversationPublic, status_code=status.HTTP_201_CREATED)
async def create_conversation(body: ConversationCreate, current_user: dict = Depends(get_current_user), service: ConversationService = Depends(get_conversation_service)):
    if current_user["_id"] not in body.participant_ids:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Creator must be a participant")
    return await service.create(
        body.type,
        body.participant_ids,
        creator_id=current_user["_id"],
        metadata=body.metadata,
        initial_message=body.initial_message,
    )


@router.post("/direct", response_model=ConversationPublic)
async def get_or_create_direct(body: DirectConversationRequest, current_user: dict = Depends(get_current_user), service: ConversationService = Depends(get_conversation_service)):
    conversation, _ = await service.get_or_create_direct(current_user["_id"], body.other_user_id, creator_id=current_user["_id"], metadata=body.metadata)
    return conversation


@router.get("", response_model=List[ConversationPublic])
async def list_conversations(limit: int = Query(50, ge=1, le=100), current_user: dict = Depends(get_current_user), service: ConversationService = Depends(get_conversation_service)):
    return await service.list_for_user(current_user["_id"], limit=limit)


@router.get("/{conversation_id}", response_model=ConversationPublic)
async def get_conversation(conversation_id: str, current_user: dict = Depends(get_current_user), service: ConversationService = Depends(get_conversation_service)):
    return await _load_for_participant(conversation_id, current_user, service)


@router.get("/{conversation_id}/messages", response_model=List[MessagePublic])
async def list_messages(
    conversation_id: str,
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
    message_service: MessageService = Depends(get_message_service),
):
    await _load_for_participant(conversation_id, current_user, service)
    return await message_service.list_messages(conversation_id, limit=limit)


@router.post("/{conversation_id}/messages", response_model=MessagePublic, status_code=status.HTTP_201_CREATED)
async def send_message(
    conversation_id: str,
    body: MessageCreate,
    current_user: dict = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
    message_service: MessageService = Depends(get_message_service),
):
    await _load_for_participant(conversation_id, current_user, service)
    return await message_service.send(
        conversation_id=conversation_id,
        sender_id=current_user["_id"],
        sender_name=current_user["name"],
        content=body.content,
        type=body.type,
        metadata=body.metadata,
    )


@router.post("/{conversation_id}/read")
async def mark_conversation_read(
    conversation_id: str,
    current_user: dict = Depends(get_current_user),
    conversation_service: ConversationService = Depends(get_conversation_service),
    service: ReadStateService = Depends(get_read_state_service),
):
    await _load_for_participant(conversation_id, current_user, conversation_service)
    updated = await service.mark_conversation_read(conversation_id, current_user["_id"])
    return {"updated": updated}
