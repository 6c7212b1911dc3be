"""
UrbanFix Core Library.

This package provides the core functionality for the UrbanFix issue service,
including database management, models, repositories, services, and logging.

Usage:
    # Database
    from urbanfix.db import db, get_db
    from urbanfix.models import Issue, IssueTimelineEntry, IssueUpvote
    from urbanfix.repositories import IssueRepository

    # Lifecycle rules
    from urbanfix.services import IssueLifecycleService

    # Config
    from urbanfix.config import get_settings, Settings

    # Logging
    from urbanfix.logging import get_logger, configure_logging
"""

__version__ = "1.0.0"

# Lazy imports to avoid circular dependencies
# Users should import directly from submodules:
#   from urbanfix.db import db
#   from urbanfix.config import get_settings
#   from urbanfix.logging import get_logger
