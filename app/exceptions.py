"""Error taxonomy shared by the todo and rank features.

Every error carries a client-safe ``message`` and the HTTP status it maps to.
The exception handlers in ``app.main`` render them as
``{"success": false, "message": ...}``.
"""


class RankServiceError(Exception):
    """Base exception for all errors surfaced to API callers."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(RankServiceError):
    """Raised when a required field is missing or empty."""

    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(RankServiceError):
    """Raised when the caller's identity cannot be verified."""

    status_code = 401
    default_message = "Authentication failed"


class ForbiddenError(RankServiceError):
    """Raised when the entity exists but belongs to another user."""

    status_code = 403
    default_message = "Forbidden"


class NotFoundError(RankServiceError):
    """Raised when a referenced entity does not exist."""

    status_code = 404
    default_message = "Not found"


class TransactionError(RankServiceError):
    """Raised when a multi-step write fails and has been rolled back."""

    status_code = 500
    default_message = "Transaction failed"
