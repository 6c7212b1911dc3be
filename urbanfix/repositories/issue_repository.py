"""
Issue repository: storage, filtering, pagination and atomic upvote writes.
"""

import re
from datetime import datetime, timezone

from sqlalchemy import and_, func, or_, select, true, update
from sqlalchemy.exc import IntegrityError

from urbanfix.exceptions import AlreadyUpvoted, InvalidIssueId, IssueNotFound
from urbanfix.logging import get_logger
from urbanfix.models import (
    DEFAULT_CATEGORY,
    DEFAULT_PRIORITY,
    EDITABLE_FIELDS,
    Issue,
    IssueStatus,
    IssueTimelineEntry,
    IssueUpvote,
)

from .base import BaseRepository

logger = get_logger("repository.issue")

_ISSUE_ID_RE = re.compile(r"^[0-9a-f]{32}$")

# Filter keys understood by list()
FILTER_KEYS = frozenset({"search", "category", "status", "posted_by"})

# Columns update() may touch; counters, voters and timeline have their own paths
UPDATABLE_FIELDS = EDITABLE_FIELDS | {"priority"}


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class IssueRepository(BaseRepository[Issue]):
    """
    Repository for Issue records.

    Key features:
    - Identifier validation before any query is issued
    - Filtered, most-recent-first pagination with a separate total count
    - Upvotes written as one conditional unit: counter increment guarded by
      a unique (issue, voter) row, so concurrent voters never lose updates
    """

    model = Issue

    @staticmethod
    def validate_id(issue_id: str) -> str:
        """
        Check that an identifier is structurally valid.

        Raises:
            InvalidIssueId: If the id is not a 32-char lowercase hex string.
        """
        if not isinstance(issue_id, str) or not _ISSUE_ID_RE.match(issue_id):
            raise InvalidIssueId()
        return issue_id

    def get_by_id(self, issue_id: str) -> Issue:  # type: ignore[override]
        """
        Get an issue by ID.

        Raises:
            InvalidIssueId: Malformed id (checked before querying).
            IssueNotFound: No issue with this id.
        """
        self.validate_id(issue_id)
        issue = self.session.get(Issue, issue_id)
        if issue is None:
            raise IssueNotFound()
        return issue

    def list(
        self,
        filters: dict | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[int, list[Issue]]:
        """
        List issues matching filters, newest first.

        Args:
            filters: Filter dictionary with keys:
                - search: case-insensitive substring over title, description, location
                - category: exact match
                - status: exact match
                - posted_by: exact match on the reporter's email
            page: 1-indexed page number
            limit: Page size

        Returns:
            Tuple of (total matching ignoring pagination, issues on this page)
        """
        filters = filters or {}
        unknown = set(filters) - FILTER_KEYS
        if unknown:
            raise ValueError(f"Unknown filter key: {', '.join(sorted(unknown))}")
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be positive")

        conditions = []

        if filters.get("search"):
            pattern = _like_pattern(filters["search"])
            conditions.append(
                or_(
                    Issue.title.ilike(pattern, escape="\\"),
                    Issue.description.ilike(pattern, escape="\\"),
                    Issue.location.ilike(pattern, escape="\\"),
                )
            )

        if filters.get("category"):
            conditions.append(Issue.category == filters["category"])

        if filters.get("status"):
            conditions.append(Issue.status == filters["status"])

        if filters.get("posted_by"):
            conditions.append(Issue.posted_by_email == filters["posted_by"].strip().lower())

        where = and_(*conditions) if conditions else true()

        total = self.session.query(func.count(Issue.id)).filter(where).scalar() or 0

        # Equal created_at: the issue whose report entry was written later is newer
        report_entry_id = (
            select(func.min(IssueTimelineEntry.id))
            .where(IssueTimelineEntry.issue_id == Issue.id)
            .correlate(Issue)
            .scalar_subquery()
        )

        issues = (
            self.session.query(Issue)
            .filter(where)
            .order_by(Issue.created_at.desc(), report_entry_id.desc(), Issue.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return total, issues

    def create(self, **fields) -> Issue:  # type: ignore[override]
        """
        Create a new issue.

        Status is forced to Pending and the vote counter to zero. A timeline
        entry recording the report is seeded unless the caller supplies a
        non-empty timeline (list of dicts with status/message/updated_by).
        """
        timeline = fields.pop("timeline", None) or []
        for protected in ("id", "upvotes", "upvoters", "status", "created_at", "updated_at"):
            fields.pop(protected, None)

        if not fields.get("category"):
            fields["category"] = DEFAULT_CATEGORY
        if not fields.get("priority"):
            fields["priority"] = DEFAULT_PRIORITY

        issue = super().create(status=IssueStatus.PENDING.value, upvotes=0, **fields)

        if not timeline:
            reporter = fields.get("posted_by_name") or fields.get("posted_by_email")
            timeline = [
                {
                    "status": IssueStatus.PENDING.value,
                    "message": f"Issue reported by {reporter}",
                    "updated_by": fields.get("posted_by_email"),
                }
            ]

        for entry in timeline:
            issue.timeline.append(
                IssueTimelineEntry(
                    status=entry.get("status", IssueStatus.PENDING.value),
                    message=entry.get("message"),
                    updated_by=entry.get("updated_by"),
                )
            )
        self.session.flush()

        logger.debug("issue_created", issue_id=issue.id)
        return issue

    def update(self, issue_id: str, **fields) -> Issue:
        """
        Merge the supplied fields into an issue and bump updated_at.

        Raises:
            ValueError: If a field is outside the updatable set.
            InvalidIssueId, IssueNotFound
        """
        illegal = set(fields) - UPDATABLE_FIELDS
        if illegal:
            raise ValueError(f"Fields cannot be updated here: {', '.join(sorted(illegal))}")

        issue = self.get_by_id(issue_id)
        for key, value in fields.items():
            setattr(issue, key, value)
        issue.updated_at = datetime.now(timezone.utc)
        self.session.flush()
        return issue

    def delete(self, issue_id: str) -> bool:  # type: ignore[override]
        """
        Delete an issue with its timeline and voter rows.

        Raises:
            InvalidIssueId, IssueNotFound
        """
        issue = self.get_by_id(issue_id)
        self.session.delete(issue)
        self.session.flush()
        return True

    def add_upvote(self, issue_id: str, voter_email: str) -> Issue:
        """
        Record one vote and increment the counter as one unit.

        The increment is evaluated by the database (upvotes = upvotes + 1),
        which also takes the row lock that serializes voters on one issue.
        The unique (issue_id, voter_email) constraint rejects a duplicate
        voter even when two identical requests race. Both writes run inside a
        savepoint: a duplicate undoes only that savepoint, so the counter never
        drifts from the set and earlier work in the caller's transaction is kept.

        Raises:
            IssueNotFound: The issue vanished before the write.
            AlreadyUpvoted: The voter is already in the set.
        """
        self.validate_id(issue_id)

        try:
            with self.session.begin_nested():
                result = self.session.execute(
                    update(Issue)
                    .where(Issue.id == issue_id)
                    .values(upvotes=Issue.upvotes + 1)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise IssueNotFound()

                self.session.add(IssueUpvote(issue_id=issue_id, voter_email=voter_email))
                self.session.flush()
        except IntegrityError:
            logger.info("duplicate_upvote_rejected", issue_id=issue_id)
            raise AlreadyUpvoted() from None

        issue = self.session.get(Issue, issue_id)
        self.session.refresh(issue)
        return issue  # type: ignore[return-value]

    def has_upvoted(self, issue_id: str, voter_email: str) -> bool:
        """Check set membership for a voter."""
        result = self.session.query(
            self.session.query(IssueUpvote)
            .filter(IssueUpvote.issue_id == issue_id, IssueUpvote.voter_email == voter_email)
            .exists()
        ).scalar()
        return bool(result)

    def append_timeline(
        self,
        issue_id: str,
        status: str,
        message: str | None,
        updated_by: str | None,
    ) -> Issue:
        """
        Append a status entry and set the issue's current status.

        Existing entries are never modified.
        """
        issue = self.get_by_id(issue_id)
        issue.timeline.append(
            IssueTimelineEntry(status=status, message=message, updated_by=updated_by)
        )
        issue.status = status
        issue.updated_at = datetime.now(timezone.utc)
        self.session.flush()
        return issue

    def count_by_status(self) -> dict[str, int]:
        """Count issues per status (every known status present, zero if none)."""
        rows = (
            self.session.query(Issue.status, func.count(Issue.id))
            .group_by(Issue.status)
            .all()
        )
        counts = {status.value: 0 for status in IssueStatus}
        for status, count in rows:
            counts[status] = count
        return counts
