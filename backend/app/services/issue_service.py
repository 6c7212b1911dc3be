"""
Issue service - bridges FastAPI endpoints with core business logic.

Builds the lifecycle service for a request's session and converts ORM
records into response schemas while the session is still open.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from urbanfix.db import get_db
from urbanfix.models import Issue
from urbanfix.repositories import IssueRepository
from urbanfix.services import IssueLifecycleService

from ..schemas import IssueResponse


def get_lifecycle_service(db: Session = Depends(get_db)) -> IssueLifecycleService:
    """FastAPI dependency: lifecycle service bound to the request session."""
    return IssueLifecycleService(IssueRepository(db))


def issue_to_response(issue: Issue) -> IssueResponse:
    return IssueResponse(**issue.to_dict())


def batch_issue_to_response(issues: list[Issue]) -> list[IssueResponse]:
    return [issue_to_response(i) for i in issues]
