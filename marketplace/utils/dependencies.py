import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from marketplace.database.connection import mongo_db_dependency
from marketplace.repositories.conversation_repository import ConversationRepository
from marketplace.repositories.message_repository import MessageRepository
from marketplace.repositories.notification_repository import NotificationRepository
from marketplace.repositories.user_repository import UserRepository
from marketplace.services.conversation_service import ConversationService
from marketplace.services.message_service import MessageService
from marketplace.services.notification_service import NotificationService
from marketplace.services.read_state_service import ReadStateService
from marketplace.utils.security import current_user_from_payload, decode_access_token

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return current_user_from_payload(payload)


def get_optional_user(credentials: HTTPAuthorizationCredentials | None = Depends(optional_security)) -> dict | None:
    # anonymous visitors may use the contact form
    if credentials is None:
        return None
    return get_current_user(credentials)


def get_notification_service(db=Depends(mongo_db_dependency)) -> NotificationService:
    return NotificationService(NotificationRepository(db), UserRepository(db))


def get_message_service(db=Depends(mongo_db_dependency)) -> MessageService:
    return MessageService(
        MessageRepository(db),
        ConversationRepository(db),
        NotificationService(NotificationRepository(db), UserRepository(db)),
    )


def get_conversation_service(db=Depends(mongo_db_dependency), message_service: MessageService = Depends(get_message_service)) -> ConversationService:
    return ConversationService(ConversationRepository(db), message_service, UserRepository(db))


def get_read_state_service(db=Depends(mongo_db_dependency)) -> ReadStateService:
    return ReadStateService(MessageRepository(db), ConversationRepository(db), NotificationRepository(db))
