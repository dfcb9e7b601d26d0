CONVERSATIONS = "conversations"
USERS = "users"
REQUESTS = "requests"
DEVICES = "devices"

MESSAGES = "messages"
NOTIFICATIONS = "notifications"
QUOTES = "quotes"

# (parent collection, child collection) -> field on the child holding the parent id
NESTED_PARENT_KEYS = {
    (CONVERSATIONS, MESSAGES): "conversation_id",
    (USERS, NOTIFICATIONS): "recipient_id",
    (REQUESTS, QUOTES): "request_id",
}

CONVERSATION_TYPES = ("direct", "contact")
MESSAGE_TYPES = ("text", "contact_inquiry")

NOTIFICATION_NEW_MESSAGE = "new_message"
NOTIFICATION_CONVERSATION_CREATED = "conversation_created"
NOTIFICATION_USER_PENDING_APPROVAL = "new_user_pending_approval"

MAX_MESSAGE_LENGTH = 5000
LAST_MESSAGE_PREVIEW = 100
NOTIFICATION_PREVIEW = 50

ANONYMOUS_SENDER = "anonymous"


def nested_collection_name(parent: str, child: str) -> str:
    return f"{parent}.{child}"
