"""
SQLAlchemy models for UrbanFix.

Usage:
    from urbanfix.models import Issue, IssueStatus, IssueTimelineEntry, IssueUpvote
"""

from .base import Base
from .issue import (
    DEFAULT_CATEGORY,
    DEFAULT_PRIORITY,
    EDITABLE_FIELDS,
    Issue,
    IssueStatus,
    IssueTimelineEntry,
    IssueUpvote,
    new_issue_id,
)

__all__ = [
    "Base",
    "DEFAULT_CATEGORY",
    "DEFAULT_PRIORITY",
    "EDITABLE_FIELDS",
    "Issue",
    "IssueStatus",
    "IssueTimelineEntry",
    "IssueUpvote",
    "new_issue_id",
]
