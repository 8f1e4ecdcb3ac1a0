class ChatError(Exception):
    """Base class for errors raised by the chat services."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(ChatError):
    """Bad input, rejected before any network call where possible."""

    status_code = 400


class AuthorizationError(ChatError):
    """Caller is not allowed to touch the target row."""

    status_code = 403


class NotFoundError(ChatError):
    status_code = 404


class ConflictError(ChatError):
    """Unique constraint violation on insert."""

    status_code = 409


class StoreError(ChatError):
    """Transient network or backend failure."""

    status_code = 503


class EventDecodeError(ChatError):
    status_code = 422
