"""
Error taxonomy for the guestbook service.

Services raise these; the handlers registered in ``guestbook.main`` turn
them into ``{"code": ..., "message": ...}`` JSON responses with the class'
``status_code``.  ``code`` is stable and meant for clients to branch on;
``message`` is for humans.
"""


class GuestbookError(Exception):
    status_code: int = 500
    code: str = "ServerError"
    default_message: str = "Server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# --- 400 ---

class ValidationError(GuestbookError):
    status_code = 400
    code = "ValidationError"
    default_message = "Invalid request"


class MissingEmail(ValidationError):
    code = "MissingEmail"
    default_message = "Email is required"


class MissingName(ValidationError):
    code = "MissingName"
    default_message = "Name is required"


class MissingMessage(ValidationError):
    code = "MissingMessage"
    default_message = "Message is required"


# --- 401 / 403 ---

class Unauthenticated(GuestbookError):
    status_code = 401
    code = "Unauthenticated"
    default_message = "Authentication required"


class MissingToken(Unauthenticated):
    code = "MissingToken"
    default_message = "Access token required"


class InvalidToken(Unauthenticated):
    # A credential was presented but could not be verified.
    status_code = 403
    code = "InvalidToken"
    default_message = "Invalid token"


class Forbidden(GuestbookError):
    status_code = 403
    code = "Forbidden"
    default_message = "Forbidden"


class AdminRequired(Forbidden):
    code = "AdminRequired"
    default_message = "Admin access denied"


# --- 404 ---

class NotFound(GuestbookError):
    status_code = 404
    code = "NotFound"
    default_message = "Not found"


class VisitorNotFound(NotFound):
    default_message = "Visitor not found"


class CommentNotFound(NotFound):
    default_message = "Comment not found"


# --- 409 ---

class Conflict(GuestbookError):
    status_code = 409
    code = "Conflict"
    default_message = "Conflict"


class DuplicateEmail(Conflict):
    code = "DuplicateEmail"
    default_message = "A visitor with this email already exists; retry as a login"


# --- 5xx ---

class StoreUnavailable(GuestbookError):
    default_message = "Server error"


class ConfigurationError(RuntimeError):
    """Raised at startup when required configuration is missing."""
