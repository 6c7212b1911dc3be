"""
Domain errors raised by repositories and the lifecycle service.

Each error carries the HTTP status it maps to, so the API layer can render
them with a single exception handler. None of them is fatal to the process;
every failure is scoped to one request.
"""


class IssueServiceError(Exception):
    """Base class for all issue-service errors."""

    status_code: int = 400
    default_detail: str = "Request could not be processed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationFailed(IssueServiceError):
    """Missing or malformed required input."""

    status_code = 400
    default_detail = "Invalid input"


class InvalidIssueId(ValidationFailed):
    """The identifier is not structurally valid."""

    default_detail = "Invalid issue id"


class NotAuthenticated(IssueServiceError):
    """The operation needs an identity and none was presented."""

    status_code = 401
    default_detail = "Authentication required"


class NotAuthorized(IssueServiceError):
    """Requester is neither the reporter nor an administrator."""

    status_code = 403
    default_detail = "You are not allowed to modify this issue"


class IssueNotFound(IssueServiceError):
    status_code = 404
    default_detail = "Issue not found"


class SelfUpvote(IssueServiceError):
    status_code = 400
    default_detail = "You cannot upvote your own issue"


class AlreadyUpvoted(IssueServiceError):
    status_code = 400
    default_detail = "You have already upvoted this issue"


class StorageUnavailable(IssueServiceError):
    """Transient storage failure. Safe to retry."""

    status_code = 503
    default_detail = "Storage temporarily unavailable, please retry"


__all__ = [
    "IssueServiceError",
    "ValidationFailed",
    "InvalidIssueId",
    "NotAuthenticated",
    "NotAuthorized",
    "IssueNotFound",
    "SelfUpvote",
    "AlreadyUpvoted",
    "StorageUnavailable",
]
