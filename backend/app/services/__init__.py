"""API-side service helpers."""

from . import issue_service

__all__ = ["issue_service"]
