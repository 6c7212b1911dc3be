"""
Pydantic schemas for request and response validation.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from urbanfix.models import IssueStatus


class PostedBy(BaseModel):
    email: str
    name: str | None = None
    photoURL: str | None = None


class TimelineEntry(BaseModel):
    status: str
    message: str | None = None
    updatedBy: str | None = None
    date: datetime | None = None


class IssueCreateRequest(BaseModel):
    """Reporter-supplied fields; the timeline is always seeded server-side."""

    model_config = ConfigDict(extra="ignore")

    # Optional here so a missing title is reported as a 400 by the service
    title: str | None = Field(default=None, max_length=512)
    description: str | None = None
    location: str | None = Field(default=None, max_length=512)
    category: str | None = Field(default=None, max_length=128)
    priority: str | None = Field(default=None, max_length=64)
    image: str | None = Field(default=None, max_length=1024)


class IssueUpdateRequest(BaseModel):
    """Editable fields only; anything else in the body is ignored."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = Field(default=None, max_length=512)
    description: str | None = None
    location: str | None = Field(default=None, max_length=512)
    category: str | None = Field(default=None, max_length=128)
    image: str | None = Field(default=None, max_length=1024)


class IssueStatusRequest(BaseModel):
    status: IssueStatus
    message: str | None = None


class IssueResponse(BaseModel):
    id: str
    title: str
    description: str | None = None
    location: str | None = None
    category: str
    priority: str
    status: str
    image: str | None = None
    postedBy: PostedBy
    upvotes: int = 0
    upvotedUsers: list[str] = Field(default_factory=list)
    timeline: list[TimelineEntry] = Field(default_factory=list)
    createdAt: datetime | None = None
    updatedAt: datetime | None = None


class IssueListResponse(BaseModel):
    total: int
    page: int
    limit: int
    issues: list[IssueResponse]


class IssueDeleteResponse(BaseModel):
    deleted: bool = True
    id: str


class IssueStatsResponse(BaseModel):
    total: int
    byStatus: dict[str, int]
