import logging

from marketplace.core.errors import NotFound, PermissionDenied
from marketplace.repositories.conversation_repository import ConversationRepository
from marketplace.repositories.message_repository import MessageRepository
from marketplace.repositories.notification_repository import NotificationRepository
from marketplace.utils.validation import require_id

logger = logging.getLogger(__name__)


class ReadStateService:
    """Every write here is idempotent, callers may simply retry after a failure."""

    def __init__(
        self,
        message_repo: MessageRepository,
        conversation_repo: ConversationRepository,
        notification_repo: NotificationRepository,
    ) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo
        self._notification_repo = notification_repo

    async def mark_conversation_read(self, conversation_id: str, user_id: str) -> int:
        require_id(conversation_id, "Conversation ID")
        require_id(user_id, "User ID")
        conversation = await self._conversation_repo.get_by_id(conversation_id)
        if conversation is None:
            raise NotFound("Conversation not found")
        # only participants are added to read_by
        if user_id not in conversation["participants"]:
            raise PermissionDenied(f"{user_id} is not a participant of conversation {conversation_id}")
        modified = await self._message_repo.mark_all_read(conversation_id, user_id)
        await self._conversation_repo.reset_unread(conversation_id, user_id)
        logger.debug("User %s read conversation %s (%d messages updated)", user_id, conversation_id, modified)
        return modified

    async def mark_notification_read(self, user_id: str, notification_id: str) -> bool:
        require_id(user_id, "User ID")
        require_id(notification_id, "Notification ID")
        return await self._notification_repo.mark_read(user_id, notification_id)

    async def mark_all_notifications_read(self, user_id: str) -> int:
        require_id(user_id, "User ID")
        return await self._notification_repo.mark_all_read(user_id)
