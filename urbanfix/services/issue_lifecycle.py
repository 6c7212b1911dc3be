"""
Issue Lifecycle Service.

Authorization and domain rules layered over IssueRepository:
- reporters (or admins) alone may edit or delete an issue
- a voter counts at most once and never on their own issue
- status changes are recorded as append-only timeline entries

Every operation takes the caller's identity explicitly (None = anonymous).
Authorization is always checked before any write is attempted.
"""

from typing import Any, Mapping

from urbanfix.exceptions import (
    AlreadyUpvoted,
    NotAuthenticated,
    NotAuthorized,
    SelfUpvote,
    ValidationFailed,
)
from urbanfix.identity import Identity
from urbanfix.logging import get_logger
from urbanfix.models import DEFAULT_CATEGORY, EDITABLE_FIELDS, Issue, IssueStatus
from urbanfix.repositories import IssueRepository

logger = get_logger("service.issue_lifecycle")

# Reporter-supplied fields accepted on submission
SUBMITTABLE_FIELDS = frozenset(
    {"title", "description", "location", "category", "priority", "image"}
)


def _require_identity(identity: Identity | None) -> Identity:
    if identity is None:
        raise NotAuthenticated()
    return identity


class IssueLifecycleService:
    """
    Service enforcing issue lifecycle rules.

    Usage:
        from urbanfix.repositories import IssueRepository
        from urbanfix.services import IssueLifecycleService

        with db.session() as session:
            service = IssueLifecycleService(IssueRepository(session))
            issue = service.submit({"title": "Pothole"}, reporter)
            service.upvote(issue.id, voter)
    """

    def __init__(self, repository: IssueRepository):
        self.repository = repository

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, issue_id: str) -> Issue:
        return self.repository.get_by_id(issue_id)

    def list(
        self, filters: dict | None = None, page: int = 1, limit: int = 10
    ) -> tuple[int, list[Issue]]:
        return self.repository.list(filters, page=page, limit=limit)

    def stats(self) -> dict[str, Any]:
        by_status = self.repository.count_by_status()
        return {"total": self.repository.count(), "byStatus": by_status}

    # =========================================================================
    # Writes
    # =========================================================================

    def submit(self, data: Mapping[str, Any], reporter: Identity | None) -> Issue:
        """
        Submit a new issue on behalf of the reporter.

        The reporter's email, name and photo are copied onto the issue; later
        profile changes do not alter them.

        Raises:
            NotAuthenticated: No reporter identity.
            ValidationFailed: Title missing or blank.
        """
        reporter = _require_identity(reporter)

        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            logger.warning("issue_rejected", reason="missing_title", reporter=reporter.email)
            raise ValidationFailed("Title is required")

        fields = {k: v for k, v in data.items() if k in SUBMITTABLE_FIELDS and v is not None}
        fields["title"] = title.strip()

        issue = self.repository.create(
            posted_by_email=reporter.email,
            posted_by_name=reporter.name,
            posted_by_photo_url=reporter.photo_url,
            **fields,
        )
        logger.info("issue_submitted", issue_id=issue.id, reporter=reporter.email)
        return issue

    def edit(
        self, issue_id: str, patch: Mapping[str, Any], requester: Identity | None
    ) -> Issue:
        """
        Apply an edit restricted to title, description, category, location, image.

        Raises:
            NotAuthenticated, NotAuthorized, InvalidIssueId, IssueNotFound,
            ValidationFailed (blank title)
        """
        requester = _require_identity(requester)
        issue = self.repository.get_by_id(issue_id)
        self._authorize_owner(issue, requester, action="edit")

        changes = {k: v for k, v in patch.items() if k in EDITABLE_FIELDS}
        if "title" in changes:
            title = changes["title"]
            if not isinstance(title, str) or not title.strip():
                raise ValidationFailed("Title cannot be empty")
            changes["title"] = title.strip()
        if "category" in changes and not changes["category"]:
            changes["category"] = DEFAULT_CATEGORY
        if not changes:
            return issue

        issue = self.repository.update(issue_id, **changes)
        logger.info(
            "issue_edited", issue_id=issue_id, editor=requester.email, fields=sorted(changes)
        )
        return issue

    def remove(self, issue_id: str, requester: Identity | None) -> None:
        """
        Delete an issue.

        Raises:
            NotAuthenticated, NotAuthorized, InvalidIssueId, IssueNotFound
        """
        requester = _require_identity(requester)
        issue = self.repository.get_by_id(issue_id)
        self._authorize_owner(issue, requester, action="remove")

        self.repository.delete(issue_id)
        logger.info("issue_removed", issue_id=issue_id, actor=requester.email)

    def upvote(self, issue_id: str, voter: Identity | None) -> Issue:
        """
        Cast one upvote.

        The membership check here rejects the common repeat case early; the
        repository's unique voter row decides races between identical voters.

        Raises:
            NotAuthenticated, InvalidIssueId, IssueNotFound, SelfUpvote, AlreadyUpvoted
        """
        voter = _require_identity(voter)
        issue = self.repository.get_by_id(issue_id)

        if voter.email == issue.posted_by_email:
            logger.warning("upvote_rejected", issue_id=issue_id, reason="self_upvote")
            raise SelfUpvote()

        if self.repository.has_upvoted(issue_id, voter.email):
            logger.warning("upvote_rejected", issue_id=issue_id, reason="already_upvoted")
            raise AlreadyUpvoted()

        issue = self.repository.add_upvote(issue_id, voter.email)
        logger.info("issue_upvoted", issue_id=issue_id, upvotes=issue.upvotes)
        return issue

    def append_status(
        self,
        issue_id: str,
        new_status: IssueStatus | str,
        message: str | None,
        actor: Identity | None,
    ) -> Issue:
        """
        Record a status change as a new timeline entry.

        Any transition is accepted; whether the actor may moderate is decided
        by the caller (the API only exposes this to administrators).

        Raises:
            NotAuthenticated, ValidationFailed (unknown status), InvalidIssueId, IssueNotFound
        """
        actor = _require_identity(actor)
        try:
            status = IssueStatus(new_status)
        except ValueError:
            raise ValidationFailed(f"Unknown status: {new_status}") from None

        issue = self.repository.append_timeline(
            issue_id, status=status.value, message=message, updated_by=actor.email
        )
        logger.info(
            "issue_status_appended", issue_id=issue_id, status=status.value, actor=actor.email
        )
        return issue

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _authorize_owner(issue: Issue, requester: Identity, action: str) -> None:
        if requester.is_admin or requester.email == issue.posted_by_email:
            return
        logger.warning(
            "issue_access_denied", issue_id=issue.id, requester=requester.email, action=action
        )
        raise NotAuthorized()
