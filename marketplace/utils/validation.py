import re
from typing import Optional

from marketplace.core.constants import MAX_MESSAGE_LENGTH
from marketplace.core.errors import InvalidArgument

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def require_id(value: Optional[str], field: str) -> str:
    # ids end up in field paths such as unread_count.<user id>
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument(f"{field} is required")
    if "." in value or value.startswith("$"):
        raise InvalidArgument(f"{field} is malformed")
    return value


def require_text(value: Optional[str], field: str, max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """Return the trimmed text, rejecting empty or oversized input."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument(f"{field} is required")
    text = value.strip()
    if len(text) > max_length:
        raise InvalidArgument(f"{field} is too long (max {max_length} characters)")
    return text


def require_email(value: Optional[str]) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument("Email is required")
    email = value.strip()
    if not EMAIL_RE.match(email):
        raise InvalidArgument("Invalid email format")
    return email
