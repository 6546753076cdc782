from __future__ import annotations
from enum import Enum


class ErrorKind(str, Enum):
    NOT_AUTHENTICATED = "not_authenticated"
    EMAIL_NOT_VERIFIED = "email_not_verified"
    QUOTA_EXHAUSTED = "quota_exhausted"
    VOTING_CLOSED = "voting_closed"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    TIMEOUT = "timeout"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    FAILED = "failed"


# HTTP status per kind; routes never inspect messages.
HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_AUTHENTICATED: 401,
    ErrorKind.EMAIL_NOT_VERIFIED: 403,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.QUOTA_EXHAUSTED: 409,
    ErrorKind.VOTING_CLOSED: 409,
    ErrorKind.INVALID: 422,
    ErrorKind.FAILED: 502,
    ErrorKind.BACKEND_UNAVAILABLE: 503,
    ErrorKind.TIMEOUT: 504,
}


class ActionError(Exception):
    """A user action was refused or failed; `kind` is what the client renders on."""
    kind: ErrorKind = ErrorKind.FAILED
    default_message = "Something went wrong, please try again"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]


class NotAuthenticated(ActionError):
    kind = ErrorKind.NOT_AUTHENTICATED
    default_message = "You must be logged in to do that"


class EmailNotVerified(ActionError):
    kind = ErrorKind.EMAIL_NOT_VERIFIED
    default_message = "Please verify your email address first"


class QuotaExhausted(ActionError):
    kind = ErrorKind.QUOTA_EXHAUSTED
    default_message = "You've used all your votes this week"


class VotingClosed(ActionError):
    kind = ErrorKind.VOTING_CLOSED
    default_message = "Voting has ended for this proposal"


class Forbidden(ActionError):
    kind = ErrorKind.FORBIDDEN
    default_message = "You do not have permission to do that"


class IdeaNotFound(ActionError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Idea not found"


class InvalidIdea(ActionError):
    kind = ErrorKind.INVALID
    default_message = "Invalid idea"


class ActionFailed(ActionError):
    kind = ErrorKind.FAILED


class BackendUnavailable(ActionError):
    kind = ErrorKind.BACKEND_UNAVAILABLE
    default_message = "The service is temporarily unavailable, please try again"


class VoteTimeout(ActionError):
    kind = ErrorKind.TIMEOUT
    default_message = "Your vote took too long to confirm, please try again"
