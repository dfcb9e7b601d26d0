import logging
from typing import Any, Dict, List, Optional

from marketplace.core.constants import (
    NOTIFICATION_CONVERSATION_CREATED,
    NOTIFICATION_NEW_MESSAGE,
    NOTIFICATION_PREVIEW,
    NOTIFICATION_USER_PENDING_APPROVAL,
)
from marketplace.core.errors import InvalidArgument
from marketplace.repositories.notification_repository import NotificationRepository
from marketplace.repositories.user_repository import UserRepository
from marketplace.utils.validation import require_id

logger = logging.getLogger(__name__)


def preview(content: str, limit: int = NOTIFICATION_PREVIEW) -> str:
    return content[:limit]


class NotificationService:
    """Builds notification records and writes one row per recipient."""

    def __init__(self, notification_repo: NotificationRepository, user_repo: Optional[UserRepository] = None) -> None:
        self._notification_repo = notification_repo
        self._user_repo = user_repo

    async def notify_new_message(self, recipient_id: str, message: Dict[str, Any]) -> Dict[str, Any]:
        sender_name = message.get("sender_name") or "Unknown"
        return await self._notification_repo.create(
            recipient_id,
            NOTIFICATION_NEW_MESSAGE,
            f"New message from {sender_name}",
            self._message_payload(message),
            event_id=message["_id"],
        )

    async def notify_conversation_created(
        self,
        recipient_id: str,
        message: Dict[str, Any],
        subject: Optional[str] = None,
    ) -> Dict[str, Any]:
        sender_name = message.get("sender_name") or "Unknown"
        payload = self._message_payload(message)
        payload["subject"] = subject
        contact_email = (message.get("metadata") or {}).get("contact_email")
        if contact_email:
            payload["contact_email"] = contact_email
        return await self._notification_repo.create(
            recipient_id,
            NOTIFICATION_CONVERSATION_CREATED,
            f"New conversation from {sender_name}",
            payload,
            event_id=message["_id"],
        )

    async def notify_user_pending_approval(
        self,
        user_id: str,
        user_name: str,
        company_name: Optional[str],
        email: Optional[str],
    ) -> List[Dict[str, Any]]:
        """Tell every active admin that a freshly registered account waits for approval."""
        require_id(user_id, "User ID")
        if self._user_repo is None:
            raise RuntimeError("NotificationService needs a UserRepository to reach admins")
        admin_ids = await self._user_repo.list_admin_ids()
        if not admin_ids:
            logger.warning("No admin to notify about pending user %s", user_id)
            return []
        payload = {
            "user_id": user_id,
            "user_name": user_name,
            "company_name": company_name,
            "email": email,
            "preview": preview(f"{user_name} from {company_name or 'an unnamed company'} needs approval"),
        }
        return await self._notification_repo.create_for_many(
            admin_ids,
            NOTIFICATION_USER_PENDING_APPROVAL,
            "New user awaiting approval",
            payload,
            event_id=f"pending-user-{user_id}",
        )

    async def list_for_user(self, user_id: str, limit: int = 50, unread_only: bool = False) -> List[Dict[str, Any]]:
        require_id(user_id, "User ID")
        if limit < 1:
            raise InvalidArgument("limit must be positive")
        return await self._notification_repo.list_for_user(user_id, limit=limit, unread_only=unread_only)

    async def unread_count(self, user_id: str) -> int:
        require_id(user_id, "User ID")
        return await self._notification_repo.count_unread(user_id)

    @staticmethod
    def _message_payload(message: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "conversation_id": message["conversation_id"],
            "message_id": message["_id"],
            "sender_id": message["sender_id"],
            "sender_name": message.get("sender_name") or "Unknown",
            "preview": preview(message["content"]),
        }
