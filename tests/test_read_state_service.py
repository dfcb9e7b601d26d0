import pytest

from marketplace.core.errors import InvalidArgument, NotFound, PermissionDenied


@pytest.fixture
async def conversation(conversation_service, message_service):
    conversation = await conversation_service.create("direct", ["u1", "u2"], creator_id="u1")
    await message_service.send(conversation["_id"], "u1", "A", "Hello")
    await message_service.send(conversation["_id"], "u1", "A", "Are you there?")
    return conversation


async def test_mark_conversation_read(conversation, read_state_service, message_repo, conversation_repo):
    updated = await read_state_service.mark_conversation_read(conversation["_id"], "u2")

    assert updated == 2
    for message in await message_repo.list_by_conversation(conversation["_id"]):
        assert "u2" in message["read_by"]
        assert "u1" in message["read_by"]
    stored = await conversation_repo.get_by_id(conversation["_id"])
    assert stored["unread_count"] == {"u2": 0}


async def test_mark_conversation_read_is_idempotent(conversation, read_state_service, message_repo, conversation_repo):
    await read_state_service.mark_conversation_read(conversation["_id"], "u2")
    second = await read_state_service.mark_conversation_read(conversation["_id"], "u2")

    assert second == 0
    stored = await conversation_repo.get_by_id(conversation["_id"])
    assert stored["unread_count"]["u2"] == 0
    for message in await message_repo.list_by_conversation(conversation["_id"]):
        assert message["read_by"].count("u2") == 1


async def test_new_message_after_reading_counts_again(conversation, read_state_service, message_service, conversation_repo):
    await read_state_service.mark_conversation_read(conversation["_id"], "u2")
    await message_service.send(conversation["_id"], "u1", "A", "One more thing")

    stored = await conversation_repo.get_by_id(conversation["_id"])
    assert stored["unread_count"] == {"u2": 1}


async def test_sender_reading_own_conversation_keeps_recipient_counter(conversation, read_state_service, conversation_repo):
    await read_state_service.mark_conversation_read(conversation["_id"], "u1")

    stored = await conversation_repo.get_by_id(conversation["_id"])
    assert stored["unread_count"] == {"u1": 0, "u2": 2}


async def test_non_participant_cannot_mark_read(conversation, read_state_service, message_repo, conversation_repo):
    with pytest.raises(PermissionDenied):
        await read_state_service.mark_conversation_read(conversation["_id"], "stranger")

    stored = await conversation_repo.get_by_id(conversation["_id"])
    assert "stranger" not in stored["unread_count"]
    for message in await message_repo.list_by_conversation(conversation["_id"]):
        assert message["read_by"] == ["u1"]


async def test_mark_read_on_missing_conversation(read_state_service):
    with pytest.raises(NotFound):
        await read_state_service.mark_conversation_read("0123456789abcdef01234567", "u2")
    with pytest.raises(NotFound):
        await read_state_service.mark_conversation_read("not-an-object-id", "u2")


@pytest.mark.parametrize("conversation_id, user_id", [("", "u2"), ("abc", ""), (None, "u2")])
async def test_mark_conversation_read_requires_ids(read_state_service, conversation_id, user_id):
    with pytest.raises(InvalidArgument):
        await read_state_service.mark_conversation_read(conversation_id, user_id)


async def test_mark_single_notification_read(conversation, read_state_service, notification_repo):
    first, second = await notification_repo.list_for_user("u2")

    assert await read_state_service.mark_notification_read("u2", first["_id"]) is True
    assert await read_state_service.mark_notification_read("u2", first["_id"]) is True

    assert (await notification_repo.get_by_id("u2", first["_id"]))["read"] is True
    assert (await notification_repo.get_by_id("u2", second["_id"]))["read"] is False
    assert await notification_repo.count_unread("u2") == 1


async def test_cannot_mark_someone_elses_notification(conversation, read_state_service, notification_repo):
    notification = (await notification_repo.list_for_user("u2"))[0]

    assert await read_state_service.mark_notification_read("u1", notification["_id"]) is False
    assert (await notification_repo.get_by_id("u2", notification["_id"]))["read"] is False


async def test_mark_all_notifications_read(conversation, read_state_service, notification_repo):
    assert await read_state_service.mark_all_notifications_read("u2") == 2
    assert await read_state_service.mark_all_notifications_read("u2") == 0
    assert await notification_repo.count_unread("u2") == 0


async def test_notification_ids_are_required(read_state_service):
    with pytest.raises(InvalidArgument):
        await read_state_service.mark_notification_read("u2", "")
    with pytest.raises(InvalidArgument):
        await read_state_service.mark_all_notifications_read("")
