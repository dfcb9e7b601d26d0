from datetime import datetime

import pytest

from marketplace.core.errors import InvalidArgument, NotFound
from marketplace.repositories.message_repository import MESSAGES_COLLECTION


async def test_create_direct_conversation(conversation_service):
    conversation = await conversation_service.create("direct", ["u1", "u2"], creator_id="u1", metadata={"product_id": "p1"})

    assert conversation["type"] == "direct"
    assert conversation["participants"] == ["u1", "u2"]
    assert conversation["unread_count"] == {}
    assert conversation["last_message"] is None
    assert conversation["metadata"] == {"product_id": "p1"}

    fetched = await conversation_service.get_by_id(conversation["_id"])
    assert fetched["_id"] == conversation["_id"]
    assert fetched["created_by"] == "u1"


@pytest.mark.parametrize(
    "type_, participants",
    [
        ("direct", []),
        ("contact", []),
        ("direct", ["u1"]),
        ("direct", ["u1", "u1"]),
        ("direct", ["u1", "u2", "u3"]),
        ("group", ["u1", "u2"]),
        ("direct", ["u1", ""]),
    ],
)
async def test_create_rejects_bad_participant_sets(db, conversation_service, type_, participants):
    with pytest.raises(InvalidArgument):
        await conversation_service.create(type_, participants, creator_id="u1")
    assert await db["conversations"].count_documents({}) == 0


async def test_contact_conversation_allows_any_size(conversation_service):
    conversation = await conversation_service.create("contact", ["admin1", "admin2", "buyer"], creator_id="buyer")
    assert len(conversation["participants"]) == 3


async def test_create_does_not_dedupe_direct_pairs(conversation_service):
    first = await conversation_service.create("direct", ["u1", "u2"], creator_id="u1")
    second = await conversation_service.create("direct", ["u2", "u1"], creator_id="u2")
    assert first["_id"] != second["_id"]


async def test_get_or_create_direct_reuses_the_pair(conversation_service):
    created, was_created = await conversation_service.get_or_create_direct("u1", "u2")
    again, was_created_again = await conversation_service.get_or_create_direct("u2", "u1")

    assert was_created is True
    assert was_created_again is False
    assert again["_id"] == created["_id"]


async def test_get_or_create_direct_keeps_product_threads_apart(conversation_service):
    plain, _ = await conversation_service.get_or_create_direct("u1", "u2")
    product, created = await conversation_service.get_or_create_direct("u1", "u2", metadata={"product_id": "p9"})
    same_product, created_again = await conversation_service.get_or_create_direct("u2", "u1", metadata={"product_id": "p9"})

    assert created is True
    assert product["_id"] != plain["_id"]
    assert created_again is False
    assert same_product["_id"] == product["_id"]


async def test_get_by_id_not_found(conversation_service):
    with pytest.raises(NotFound):
        await conversation_service.get_by_id("0123456789abcdef01234567")
    with pytest.raises(NotFound):
        await conversation_service.get_by_id("not-an-object-id")


async def test_list_for_user_most_recent_first(db, conversation_service):
    base = {"type": "direct", "last_message": None, "unread_count": {}, "metadata": {}}
    await db["conversations"].insert_many(
        [
            dict(base, participants=["u1", "u2"], created_at=datetime(2024, 1, 1), updated_at=datetime(2024, 3, 1)),
            dict(base, participants=["u1", "u3"], created_at=datetime(2024, 2, 1), updated_at=datetime(2024, 2, 1)),
            dict(base, participants=["u4", "u5"], created_at=datetime(2024, 4, 1), updated_at=datetime(2024, 4, 1)),
        ]
    )

    conversations = await conversation_service.list_for_user("u1")

    assert [c["participants"] for c in conversations] == [["u1", "u2"], ["u1", "u3"]]
    assert all(isinstance(c["_id"], str) for c in conversations)


async def test_contact_inquiry_from_anonymous_visitor(admins, conversation_service, conversation_repo, notification_repo):
    conversation, message = await conversation_service.send_contact_inquiry(
        name="Jane Buyer",
        email="jane@example.com",
        subject="Bulk pricing",
        message="  Do you ship to Rotterdam?  ",
    )

    assert conversation["type"] == "contact"
    assert conversation["participants"] == ["admin1", "admin2"]
    assert conversation["metadata"]["source"] == "contact_page"
    assert conversation["metadata"]["contact_email"] == "jane@example.com"
    assert message["sender_id"] == "anonymous"
    assert message["read_by"] == ["anonymous"]
    assert message["type"] == "contact_inquiry"
    assert message["content"] == "Do you ship to Rotterdam?"
    assert message["metadata"]["is_anonymous"] is True

    stored = await conversation_repo.get_by_id(conversation["_id"])
    assert stored["unread_count"] == {"admin1": 1, "admin2": 1}
    for admin in admins:
        [notification] = await notification_repo.list_for_user(admin)
        assert notification["type"] == "conversation_created"
        assert notification["payload"]["subject"] == "Bulk pricing"
    assert await notification_repo.list_for_user("admin3") == []


async def test_contact_inquiry_from_signed_in_user(admins, conversation_service, conversation_repo):
    conversation, message = await conversation_service.send_contact_inquiry(
        name="Bob",
        email="bob@example.com",
        message="Advertise with you?",
        user_id="buyer1",
        tag="advertising",
    )

    assert conversation["participants"] == ["admin1", "admin2", "buyer1"]
    assert conversation["metadata"]["subject"] == "Advertising Inquiry"
    assert message["sender_id"] == "buyer1"
    stored = await conversation_repo.get_by_id(conversation["_id"])
    assert stored["unread_count"] == {"admin1": 1, "admin2": 1}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"name": "", "email": "a@b.co", "message": "hi"},
        {"name": "A", "email": "not-an-email", "message": "hi"},
        {"name": "A", "email": "a@b.co", "message": "  "},
        {"name": "A", "email": "a@b.co", "message": "x" * 5001},
    ],
)
async def test_contact_inquiry_validation(db, admins, conversation_service, kwargs):
    with pytest.raises(InvalidArgument):
        await conversation_service.send_contact_inquiry(**kwargs)
    assert await db["conversations"].count_documents({}) == 0


async def test_contact_inquiry_without_admins(conversation_service):
    with pytest.raises(NotFound):
        await conversation_service.send_contact_inquiry(name="A", email="a@b.co", message="hi")


async def test_participant_details_are_copied_from_user_profiles(db, conversation_service):
    await db["users"].insert_many(
        [
            {"_id": "u1", "email": "alice@example.com", "display_name": "Alice", "role": "user", "company_id": "c1", "company_name": "Acme", "company_logo": "https://cdn/acme.png", "photo_url": "https://cdn/alice.png"},
            {"_id": "u2", "email": "bob@example.com", "role": "user", "photo_url": "https://cdn/bob.png"},
        ]
    )

    conversation = await conversation_service.create("contact", ["u1", "u2", "u3"], creator_id="u1")

    details = (await conversation_service.get_by_id(conversation["_id"]))["participant_details"]
    assert set(details) == {"u1", "u2"}
    assert details["u1"]["display_name"] == "Alice"
    assert details["u1"]["photo_url"] == "https://cdn/acme.png"
    assert details["u1"]["company_name"] == "Acme"
    assert details["u2"]["display_name"] == "bob@example.com"
    assert details["u2"]["photo_url"] == "https://cdn/bob.png"
    assert details["u2"]["company_id"] is None


async def test_initial_message_is_sent_by_the_creator(db, conversation_service, message_repo, notification_repo):
    await db["users"].insert_one({"_id": "u1", "email": "alice@example.com", "display_name": "Alice"})

    conversation = await conversation_service.create(
        "direct", ["u1", "u2"], creator_id="u1", metadata={"product_id": "p1"}, initial_message="  Is this in stock?  "
    )

    [message] = await message_repo.list_by_conversation(conversation["_id"])
    assert message["content"] == "Is this in stock?"
    assert message["sender_name"] == "Alice"
    assert message["type"] == "text"
    assert conversation["unread_count"] == {"u2": 1}
    assert conversation["last_message"]["content"] == "Is this in stock?"
    [notification] = await notification_repo.list_for_user("u2")
    assert notification["type"] == "conversation_created"
    assert await notification_repo.list_for_user("u1") == []


async def test_initial_message_on_contact_conversation_is_an_inquiry(conversation_service, message_repo):
    conversation = await conversation_service.create(
        "contact",
        ["u1", "admin1"],
        creator_id="u1",
        metadata={"subject": "Bulk order", "contact_email": "u1@example.com", "product_id": "p1"},
        initial_message="Can you do 500 units?",
    )

    [message] = await message_repo.list_by_conversation(conversation["_id"])
    assert message["type"] == "contact_inquiry"
    assert message["sender_name"] == "Unknown"
    assert message["metadata"] == {"subject": "Bulk order", "contact_email": "u1@example.com"}


@pytest.mark.parametrize("initial_message, creator_id", [("   ", "u1"), ("hello", None)])
async def test_bad_initial_message_writes_nothing(db, conversation_service, initial_message, creator_id):
    with pytest.raises(InvalidArgument):
        await conversation_service.create("direct", ["u1", "u2"], creator_id=creator_id, initial_message=initial_message)

    assert await db["conversations"].count_documents({}) == 0
    assert await db[MESSAGES_COLLECTION].count_documents({}) == 0
