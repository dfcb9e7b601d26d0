import jwt
import pytest
from mongomock_motor import AsyncMongoMockClient

from marketplace.core.config import JWT_ALGORITHM, JWT_SECRET
from marketplace.repositories.conversation_repository import ConversationRepository
from marketplace.repositories.device_repository import DeviceRepository
from marketplace.repositories.message_repository import MessageRepository
from marketplace.repositories.notification_repository import NotificationRepository
from marketplace.repositories.user_repository import UserRepository
from marketplace.services.conversation_service import ConversationService
from marketplace.services.message_service import MessageService
from marketplace.services.notification_service import NotificationService
from marketplace.services.read_state_service import ReadStateService
from marketplace.utils import realtime_bus


@pytest.fixture(autouse=True)
def local_bus(monkeypatch):
    monkeypatch.setattr(realtime_bus, "REDIS_URL", None)
    bus = realtime_bus.LocalBus()
    monkeypatch.setattr(realtime_bus, "_bus", bus)
    return bus


@pytest.fixture
def db():
    return AsyncMongoMockClient()["marketplace_test"]


@pytest.fixture
def conversation_repo(db):
    return ConversationRepository(db)


@pytest.fixture
def message_repo(db):
    return MessageRepository(db)


@pytest.fixture
def notification_repo(db):
    return NotificationRepository(db)


@pytest.fixture
def user_repo(db):
    return UserRepository(db)


@pytest.fixture
def device_repo(db):
    return DeviceRepository(db)


@pytest.fixture
def notification_service(notification_repo, user_repo):
    return NotificationService(notification_repo, user_repo)


@pytest.fixture
def message_service(message_repo, conversation_repo, notification_service):
    return MessageService(message_repo, conversation_repo, notification_service)


@pytest.fixture
def conversation_service(conversation_repo, message_service, user_repo):
    return ConversationService(conversation_repo, message_service, user_repo)


@pytest.fixture
def read_state_service(message_repo, conversation_repo, notification_repo):
    return ReadStateService(message_repo, conversation_repo, notification_repo)


@pytest.fixture
async def admins(db):
    await db["users"].insert_many(
        [
            {"_id": "admin1", "email": "a1@example.com", "role": "admin"},
            {"_id": "admin2", "email": "a2@example.com", "role": "admin"},
            {"_id": "admin3", "email": "a3@example.com", "role": "admin", "is_suspended": True},
            {"_id": "buyer1", "email": "b1@example.com", "role": "user"},
        ]
    )
    return ["admin1", "admin2"]


def make_token(user_id: str, name: str = "Tester") -> str:
    return jwt.encode({"sub": user_id, "name": name}, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth_headers(user_id: str, name: str = "Tester") -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, name)}"}
