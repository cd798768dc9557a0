"""
Error Taxonomy for the Payment Schedule Rules Engine

Every error a caller can observe derives from ScheduleError. None of them is
fatal: each carries a message suitable for an inline hint or a toast.
"""


class ScheduleError(Exception):
    """Base class for all user-recoverable schedule errors."""

    kind = "error"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ScheduleError, ValueError):
    """A required field is missing or out of range. Raised before any request."""

    kind = "validation"

    def __init__(self, message: str, field: str | None = None, status_code: int | None = None):
        super().__init__(message, status_code)
        self.field = field


class InvalidStateError(ScheduleError):
    """The requested transition is not allowed from the item's current status."""

    kind = "invalid_state"


class PermissionDeniedError(ScheduleError):
    """The acting user lacks the role or rank for the action."""

    kind = "permission"


class NotFoundError(ScheduleError):
    """The requested resource does not exist (or is not visible to the user)."""

    kind = "not_found"


class NetworkError(ScheduleError):
    """The request failed, timed out, or the server answered with a 5xx."""

    kind = "network"


class SessionExpiredError(ScheduleError):
    """Token refresh failed; local credentials have been cleared."""

    kind = "session_expired"


class RequestCancelledError(ScheduleError):
    """The request handle was cancelled before its response could be applied."""

    kind = "cancelled"
