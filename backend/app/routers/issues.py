"""
Issue reporting, moderation and upvote endpoints.

Domain errors raised by the lifecycle service propagate to the handlers in
error_handlers.py; the request session rolls back on any of them. Write
routes commit before building the response, so a failed commit reaches the
client as an error rather than as the unsaved record.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from urbanfix.config import get_settings
from urbanfix.db import get_db
from urbanfix.identity import Identity
from urbanfix.models import IssueStatus
from urbanfix.services import IssueLifecycleService

from ..auth.dependencies import get_current_identity, get_optional_identity, require_admin
from ..schemas import (
    IssueCreateRequest,
    IssueDeleteResponse,
    IssueListResponse,
    IssueResponse,
    IssueStatsResponse,
    IssueStatusRequest,
    IssueUpdateRequest,
)
from ..services.issue_service import (
    batch_issue_to_response,
    get_lifecycle_service,
    issue_to_response,
)

router = APIRouter(prefix="/issues", tags=["issues"])

settings = get_settings()


# =============================================================================
# List & Query Endpoints
# =============================================================================


@router.get("", response_model=IssueListResponse)
def list_issues(
    search: str | None = Query(None, max_length=200, description="Text in title, description or location"),
    category: str | None = Query(None, description="Exact category"),
    status_filter: IssueStatus | None = Query(None, alias="status", description="Exact status"),
    posted_by: str | None = Query(None, alias="postedBy", description="Reporter email"),
    mine: bool = Query(False, description="Only issues reported by the caller"),
    page: int = Query(1, ge=1, le=10000, description="Page number (1-indexed)"),
    limit: int = Query(
        settings.default_page_size, ge=1, le=settings.max_page_size, description="Page size"
    ),
    service: IssueLifecycleService = Depends(get_lifecycle_service),
    identity: Identity | None = Depends(get_optional_identity),
):
    """List issues, newest first, with filters and pagination."""
    if mine:
        if identity is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
                headers={"WWW-Authenticate": "Bearer"},
            )
        posted_by = identity.email

    filters = {
        "search": search.strip() if search else None,
        "category": category,
        "status": status_filter.value if status_filter else None,
        "posted_by": posted_by,
    }
    total, issues = service.list(
        {k: v for k, v in filters.items() if v}, page=page, limit=limit
    )
    return IssueListResponse(
        total=total,
        page=page,
        limit=limit,
        issues=batch_issue_to_response(issues),
    )


@router.get("/stats", response_model=IssueStatsResponse)
def get_stats(service: IssueLifecycleService = Depends(get_lifecycle_service)):
    """Issue counts overall and per status."""
    return IssueStatsResponse(**service.stats())


@router.get("/{issue_id}", response_model=IssueResponse)
def get_issue(
    issue_id: str,
    service: IssueLifecycleService = Depends(get_lifecycle_service),
):
    """Fetch one issue. 400 on a malformed id, 404 if absent."""
    return issue_to_response(service.get(issue_id))


# =============================================================================
# Reporter Endpoints
# =============================================================================


@router.post("", response_model=IssueResponse, status_code=status.HTTP_201_CREATED)
def submit_issue(
    request: IssueCreateRequest,
    service: IssueLifecycleService = Depends(get_lifecycle_service),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Submit a new issue as the authenticated reporter."""
    issue = service.submit(request.model_dump(exclude_none=True), identity)
    db.commit()
    return issue_to_response(issue)


@router.put("/{issue_id}", response_model=IssueResponse)
def edit_issue(
    request: IssueUpdateRequest,
    issue_id: str,
    service: IssueLifecycleService = Depends(get_lifecycle_service),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Edit an issue (reporter or admin only)."""
    patch = request.model_dump(exclude_unset=True)
    issue = service.edit(issue_id, patch, identity)
    db.commit()
    return issue_to_response(issue)


@router.delete("/{issue_id}", response_model=IssueDeleteResponse)
def delete_issue(
    issue_id: str,
    service: IssueLifecycleService = Depends(get_lifecycle_service),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Delete an issue (reporter or admin only)."""
    service.remove(issue_id, identity)
    db.commit()
    return IssueDeleteResponse(deleted=True, id=issue_id)


@router.put("/{issue_id}/upvote", response_model=IssueResponse)
def upvote_issue(
    issue_id: str,
    service: IssueLifecycleService = Depends(get_lifecycle_service),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Cast one upvote. Rejected for the reporter and for repeat voters."""
    issue = service.upvote(issue_id, identity)
    db.commit()
    return issue_to_response(issue)


# =============================================================================
# Moderation Endpoints
# =============================================================================


@router.patch("/{issue_id}/status", response_model=IssueResponse)
def change_issue_status(
    request: IssueStatusRequest,
    issue_id: str,
    service: IssueLifecycleService = Depends(get_lifecycle_service),
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Append a status change to the issue timeline (admin only)."""
    issue = service.append_status(issue_id, request.status, request.message, admin)
    db.commit()
    return issue_to_response(issue)
