"""Error taxonomy shared by repositories, services and the HTTP layer."""


class MessagingError(Exception):
    """Base class for every error raised by the messaging core."""

    status_code = 500
    public_detail = "Something went wrong, please try again"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.public_detail)
        self.message = message or self.public_detail

    @property
    def detail(self) -> str:
        # driver messages are never shown to users
        return self.public_detail


class InvalidArgument(MessagingError):
    """Empty, oversized or malformed input. Raised before any store call."""

    status_code = 400

    @property
    def detail(self) -> str:
        return self.message


class NotFound(MessagingError):
    """A referenced conversation, message or notification does not exist."""

    status_code = 404

    @property
    def detail(self) -> str:
        return self.message


class StoreUnavailable(MessagingError):
    """Transient I/O failure from the document store."""

    status_code = 503


class PermissionDenied(MessagingError):
    """The caller may not touch this resource, or the store refused the credentials."""

    status_code = 403
    public_detail = "You do not have permission for this operation"
