"""
Meeting error taxonomy

Raised inside the store and services, converted to ActionResult values at the
action boundary. Messages are generic and safe to show to users.
"""

from typing import Optional


class MeetingError(Exception):
    """Base class for all expected meeting failures"""

    code = "error"
    message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class NotFoundError(MeetingError):
    code = "not_found"
    message = "Not found"


class UnauthorizedError(MeetingError):
    code = "unauthorized"
    message = "Not authorized"


class AlreadyClaimedError(MeetingError):
    code = "already_claimed"
    message = "This name is already active on another device"


class MeetingFrozenError(MeetingError):
    code = "meeting_frozen"
    message = "This meeting is locked"


class GuestsNotAllowedError(MeetingError):
    code = "guests_not_allowed"
    message = "This meeting does not accept guests"


class AlreadyFinalizedError(MeetingError):
    code = "already_finalized"
    message = "This meeting has already been finalized"


class RateLimitedError(MeetingError):
    code = "rate_limited"
    message = "Too many requests. Please wait a minute."

    def __init__(self, retry_after: int, message: Optional[str] = None):
        super().__init__(message)
        self.retry_after = retry_after


class UnavailableError(MeetingError):
    code = "unavailable"
    message = "Service temporarily unavailable"


class CreationError(MeetingError):
    code = "creation_failed"
    message = "Could not create the meeting"


class InvalidInputError(MeetingError):
    code = "invalid_input"
    message = "Invalid input"
