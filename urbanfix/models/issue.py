"""
Issue-related SQLAlchemy models.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base

DEFAULT_CATEGORY = "General"
DEFAULT_PRIORITY = "Normal"

# Fields a reporter (or admin) may change through an edit
EDITABLE_FIELDS = frozenset({"title", "description", "category", "location", "image"})


class IssueStatus(str, Enum):
    """Issue moderation status."""
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    RESOLVED = "Resolved"
    REJECTED = "Rejected"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_issue_id() -> str:
    return uuid.uuid4().hex


class Issue(Base):
    """
    A reported civic problem.

    The reporter is stored as a snapshot (email, name, photo) taken at
    submission time, not as a reference to a live user record.
    """
    __tablename__ = "issues"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_issue_id)
    title: Mapped[str] = mapped_column(String(512))
    description: Mapped[Optional[str]] = mapped_column(Text)
    location: Mapped[Optional[str]] = mapped_column(String(512))
    category: Mapped[str] = mapped_column(String(128), default=DEFAULT_CATEGORY, index=True)
    priority: Mapped[str] = mapped_column(String(64), default=DEFAULT_PRIORITY)
    status: Mapped[str] = mapped_column(String(32), default=IssueStatus.PENDING.value, index=True)
    image: Mapped[Optional[str]] = mapped_column(String(1024))

    posted_by_email: Mapped[str] = mapped_column(String(255), index=True)
    posted_by_name: Mapped[Optional[str]] = mapped_column(String(255))
    posted_by_photo_url: Mapped[Optional[str]] = mapped_column(String(1024))

    # Only ever changed in the same transaction as an IssueUpvote insert
    upvotes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    timeline: Mapped[List["IssueTimelineEntry"]] = relationship(
        "IssueTimelineEntry",
        back_populates="issue",
        cascade="all, delete-orphan",
        order_by="IssueTimelineEntry.id",
        lazy="selectin",
    )
    upvoters: Mapped[List["IssueUpvote"]] = relationship(
        "IssueUpvote",
        back_populates="issue",
        cascade="all, delete-orphan",
        order_by="IssueUpvote.id",
        lazy="selectin",
    )

    @property
    def upvoted_users(self) -> List[str]:
        return [u.voter_email for u in self.upvoters]

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the issue record into its wire representation.

        Returns:
            Dictionary using the public field names (postedBy, upvotedUsers, ...).
        """
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "location": self.location,
            "category": self.category,
            "priority": self.priority,
            "status": self.status,
            "image": self.image,
            "postedBy": {
                "email": self.posted_by_email,
                "name": self.posted_by_name,
                "photoURL": self.posted_by_photo_url,
            },
            "upvotes": self.upvotes,
            "upvotedUsers": self.upvoted_users,
            "timeline": [entry.to_dict() for entry in self.timeline],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


class IssueTimelineEntry(Base):
    """
    One append-only entry in an issue's status history.

    Rows are inserted, never updated; ordering follows the autoincrement id.
    """
    __tablename__ = "issue_timeline"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    issue_id: Mapped[str] = mapped_column(
        ForeignKey("issues.id", ondelete="CASCADE"), index=True
    )
    status: Mapped[str] = mapped_column(String(32))
    message: Mapped[Optional[str]] = mapped_column(Text)
    updated_by: Mapped[Optional[str]] = mapped_column(String(255))
    date: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    issue: Mapped["Issue"] = relationship("Issue", back_populates="timeline")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "updatedBy": self.updated_by,
            "date": self.date,
        }


class IssueUpvote(Base):
    """Membership row in an issue's voter set."""
    __tablename__ = "issue_upvotes"
    __table_args__ = (
        UniqueConstraint("issue_id", "voter_email", name="uq_issue_upvotes_issue_voter"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    issue_id: Mapped[str] = mapped_column(
        ForeignKey("issues.id", ondelete="CASCADE"), index=True
    )
    voter_email: Mapped[str] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    issue: Mapped["Issue"] = relationship("Issue", back_populates="upvoters")
