import logging
from typing import Any, Dict, List, Optional

from marketplace.core.constants import (
    LAST_MESSAGE_PREVIEW,
    MESSAGE_TYPES,
    NOTIFICATION_CONVERSATION_CREATED,
    NOTIFICATION_NEW_MESSAGE,
)
from marketplace.core.errors import InvalidArgument, NotFound, StoreUnavailable
from marketplace.models.conversation import LastMessageSnapshot
from marketplace.repositories.conversation_repository import ConversationRepository
from marketplace.repositories.message_repository import MessageRepository
from marketplace.services.notification_service import NotificationService
from marketplace.utils.validation import require_id, require_text

logger = logging.getLogger(__name__)


class MessageService:
    """
    Appends messages to a conversation and fans the side effects out to the other participants.

    The message is written first and is the source of truth. The conversation summary,
    unread counters and notifications are separate writes made afterwards; a store failure
    part-way through leaves the earlier effects in place and is re-raised to the caller.
    """

    def __init__(
        self,
        message_repo: MessageRepository,
        conversation_repo: ConversationRepository,
        notification_service: NotificationService,
    ) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo
        self._notification_service = notification_service

    async def send(
        self,
        conversation_id: str,
        sender_id: str,
        sender_name: str,
        content: str,
        type: str = "text",
        metadata: Optional[Dict[str, Any]] = None,
        notification_type: str = NOTIFICATION_NEW_MESSAGE,
    ) -> Dict[str, Any]:
        require_id(conversation_id, "Conversation ID")
        require_id(sender_id, "Sender ID")
        text = require_text(content, "Message content")
        if type not in MESSAGE_TYPES:
            raise InvalidArgument(f"Unsupported message type: {type}")

        conversation = await self._conversation_repo.get_by_id(conversation_id)
        if conversation is None:
            raise NotFound("Conversation not found")

        message = await self._message_repo.create(
            conversation_id=conversation_id,
            sender_id=sender_id,
            sender_name=sender_name or "Unknown",
            content=text,
            type=type,
            metadata=metadata,
        )

        recipients = self._recipients(conversation, sender_id)
        try:
            await self._conversation_repo.update_last_message(conversation_id, self._snapshot(message))
            for recipient_id in recipients:
                await self._conversation_repo.increment_unread(conversation_id, recipient_id)
                await self._notify(notification_type, recipient_id, conversation, message)
        except StoreUnavailable:
            logger.exception(
                "Fan-out of message %s in conversation %s stopped early; the message is stored",
                message["_id"],
                conversation_id,
            )
            raise

        logger.info(
            "Message %s sent to conversation %s (%d recipients)",
            message["_id"],
            conversation_id,
            len(recipients),
        )
        return message

    async def list_messages(self, conversation_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        require_id(conversation_id, "Conversation ID")
        if limit < 1:
            raise InvalidArgument("limit must be positive")
        return await self._message_repo.list_by_conversation(conversation_id, limit=limit)

    async def _notify(self, notification_type: str, recipient_id: str, conversation: Dict[str, Any], message: Dict[str, Any]):
        if notification_type == NOTIFICATION_CONVERSATION_CREATED:
            subject = (conversation.get("metadata") or {}).get("subject")
            return await self._notification_service.notify_conversation_created(recipient_id, message, subject)
        return await self._notification_service.notify_new_message(recipient_id, message)

    @staticmethod
    def _recipients(conversation: Dict[str, Any], sender_id: str) -> List[str]:
        # participants are not deduplicated on write, so do it here
        return [pid for pid in dict.fromkeys(conversation.get("participants") or []) if pid != sender_id]

    @staticmethod
    def _snapshot(message: Dict[str, Any]) -> LastMessageSnapshot:
        return {
            "content": message["content"][:LAST_MESSAGE_PREVIEW],
            "sender_id": message["sender_id"],
            "sender_name": message["sender_name"],
            "created_at": message["created_at"],
            "type": message["type"],
        }
