"""
Core services with business logic.

Services sit above repositories and enforce domain rules; they never commit,
so the caller decides the transaction boundary.
"""

from urbanfix.services.issue_lifecycle import IssueLifecycleService

__all__ = [
    "IssueLifecycleService",
]
