"""
Repository pattern implementations for data access.

Repositories provide a clean abstraction over database operations and own
the query, filter and pagination semantics for their model.

Usage:
    from urbanfix.repositories import IssueRepository
    from urbanfix.db import db

    with db.session() as session:
        repo = IssueRepository(session)
        total, issues = repo.list({"status": "Pending"}, page=1, limit=10)
"""

from .base import BaseRepository
from .issue_repository import IssueRepository

__all__ = [
    "BaseRepository",
    "IssueRepository",
]
