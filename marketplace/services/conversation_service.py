import logging
from typing import Any, Dict, List, Optional, Tuple

from marketplace.core.constants import (
    ANONYMOUS_SENDER,
    CONVERSATION_TYPES,
    NOTIFICATION_CONVERSATION_CREATED,
)
from marketplace.core.errors import InvalidArgument, NotFound
from marketplace.models.conversation import ParticipantDetails
from marketplace.repositories.conversation_repository import ConversationRepository
from marketplace.repositories.user_repository import UserRepository
from marketplace.services.message_service import MessageService
from marketplace.utils.validation import require_email, require_id, require_text

logger = logging.getLogger(__name__)


class ConversationService:

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        message_service: Optional[MessageService] = None,
        user_repo: Optional[UserRepository] = None,
    ) -> None:
        self._conversation_repo = conversation_repo
        self._message_service = message_service
        self._user_repo = user_repo

    async def create(
        self,
        type: str,
        participant_ids: List[str],
        creator_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        initial_message: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a conversation record.

        Each participant's profile is copied into participant_details so clients can render
        the thread without a user lookup; ids without a user record are left out. When
        initial_message is given it is sent by the creator as the first message and the other
        participants are told about the new conversation.

        Does not look for an existing direct conversation between the same pair;
        callers that need one thread per pair use get_or_create_direct().
        """
        self._validate(type, participant_ids)
        text = None
        if initial_message is not None:
            text = require_text(initial_message, "Message content")
            require_id(creator_id, "Creator ID")
            if self._message_service is None:
                raise RuntimeError("Sending an initial message needs a MessageService")

        details = await self._participant_details(participant_ids)
        conversation = await self._conversation_repo.create(
            type,
            participant_ids,
            created_by=creator_id,
            metadata=metadata,
            participant_details=details,
        )
        logger.info("Created %s conversation %s with %d participants", type, conversation["_id"], len(participant_ids))
        if text is None:
            return conversation

        metadata = metadata or {}
        creator = details.get(creator_id)
        await self._message_service.send(
            conversation_id=conversation["_id"],
            sender_id=creator_id,
            sender_name=creator["display_name"] if creator else "Unknown",
            content=text,
            type="contact_inquiry" if type == "contact" else "text",
            metadata={k: metadata[k] for k in ("subject", "contact_email") if metadata.get(k) is not None},
            notification_type=NOTIFICATION_CONVERSATION_CREATED,
        )
        return await self.get_by_id(conversation["_id"])

    async def _participant_details(self, participant_ids: List[str]) -> Dict[str, ParticipantDetails]:
        if self._user_repo is None:
            return {}
        details: Dict[str, ParticipantDetails] = {}
        for pid in participant_ids:
            user = await self._user_repo.get_by_id(pid)
            if user is None:
                continue
            details[pid] = {
                "display_name": user.get("display_name") or user.get("email") or pid,
                "photo_url": user.get("company_logo") or user.get("photo_url"),
                "email": user.get("email"),
                "role": user.get("role"),
                "company_id": user.get("company_id"),
                "company_name": user.get("company_name"),
            }
        return details

    async def get_by_id(self, conversation_id: str) -> Dict[str, Any]:
        require_id(conversation_id, "Conversation ID")
        conversation = await self._conversation_repo.get_by_id(conversation_id)
        if conversation is None:
            raise NotFound("Conversation not found")
        return conversation

    async def get_or_create_direct(
        self,
        user_a: str,
        user_b: str,
        creator_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Dict[str, Any], bool]:
        """Return (conversation, created). Product and RFQ threads are kept apart from the plain thread."""
        self._validate("direct", [user_a, user_b])
        metadata = metadata or {}
        existing = await self._conversation_repo.find_direct(
            user_a,
            user_b,
            product_id=metadata.get("product_id"),
            request_id=metadata.get("request_id"),
        )
        if existing is not None:
            return existing, False
        return await self.create("direct", [user_a, user_b], creator_id=creator_id or user_a, metadata=metadata), True

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        require_id(user_id, "User ID")
        if limit < 1:
            raise InvalidArgument("limit must be positive")
        return await self._conversation_repo.list_for_user(user_id, limit=limit)

    async def send_contact_inquiry(
        self,
        name: str,
        email: str,
        message: str,
        subject: Optional[str] = None,
        user_id: Optional[str] = None,
        tag: str = "contact",
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        Open a contact conversation with every active admin and post the inquiry as its first message.

        Anonymous visitors are represented by the sentinel sender id; authenticated users
        join the conversation as a participant.
        """
        contact_name = require_text(name, "Name", max_length=200)
        contact_email = require_email(email)
        text = require_text(message, "Message")
        if user_id is not None:
            require_id(user_id, "User ID")
        if self._message_service is None or self._user_repo is None:
            raise RuntimeError("Contact inquiries need a MessageService and a UserRepository")

        admin_ids = await self._user_repo.list_admin_ids()
        if not admin_ids:
            raise NotFound("No admin users found to receive the message")

        participants = list(admin_ids)
        if user_id and user_id not in participants:
            participants.append(user_id)
        default_subject = "Advertising Inquiry" if tag == "advertising" else "Contact Inquiry"
        conversation = await self.create(
            "contact",
            participants,
            creator_id=user_id or ANONYMOUS_SENDER,
            metadata={
                "source": "advertising_inquiry" if tag == "advertising" else "contact_page",
                "tag": tag,
                "subject": subject or default_subject,
                "contact_name": contact_name,
                "contact_email": contact_email,
            },
        )
        sent = await self._message_service.send(
            conversation_id=conversation["_id"],
            sender_id=user_id or ANONYMOUS_SENDER,
            sender_name=contact_name,
            content=text,
            type="contact_inquiry",
            metadata={
                "subject": subject,
                "contact_email": contact_email,
                "contact_name": contact_name,
                "is_anonymous": not user_id,
            },
            notification_type=NOTIFICATION_CONVERSATION_CREATED,
        )
        return conversation, sent

    @staticmethod
    def _validate(type: str, participant_ids: List[str]) -> None:
        if type not in CONVERSATION_TYPES:
            raise InvalidArgument(f"Invalid conversation type: {type}")
        if not participant_ids or not isinstance(participant_ids, list):
            raise InvalidArgument("At least one participant is required")
        for pid in participant_ids:
            require_id(pid, "Participant ID")
        if type == "direct" and (len(participant_ids) != 2 or len(set(participant_ids)) != 2):
            raise InvalidArgument("Direct conversations require exactly 2 distinct participants")
