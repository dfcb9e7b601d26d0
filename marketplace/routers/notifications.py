from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from marketplace.schemas.notification import NotificationPublic
from marketplace.services.notification_service import NotificationService
from marketplace.services.read_state_service import ReadStateService
from marketplace.utils.dependencies import get_current_user, get_notification_service, get_read_state_service


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationPublic])
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    unread_only: bool = False,
    current_user: dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.list_for_user(current_user["_id"], limit=limit, unread_only=unread_only)


@router.get("/unread_count")
async def unread_count(current_user: dict = Depends(get_current_user), service: NotificationService = Depends(get_notification_service)):
    return {"unread": await service.unread_count(current_user["_id"])}


@router.post("/read_all")
async def mark_all_read(current_user: dict = Depends(get_current_user), service: ReadStateService = Depends(get_read_state_service)):
    return {"updated": await service.mark_all_notifications_read(current_user["_id"])}


@router.post("/{notification_id}/read")
async def mark_read(notification_id: str, current_user: dict = Depends(get_current_user), service: ReadStateService = Depends(get_read_state_service)):
    ok = await service.mark_notification_read(current_user["_id"], notification_id)
    if not ok:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return {"ok": True}
