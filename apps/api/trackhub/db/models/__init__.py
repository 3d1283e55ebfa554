# apps/api/trackhub/db/models/__init__.py
"""
Central aggregator / namespace for all SQLAlchemy models in Track-Hub.

Recommended usage:
    from trackhub.db.models import User, Project, UserToProject, Question

Import order inside this file is important:
1. Base (always first)
2. Independent / core models (User)
3. Dependent models (Project → memberships, questions, meetings...)
4. Audit / billing models (last)
"""

# ────────────────────────────────────────────────
# Core / foundational (no dependencies)
# ────────────────────────────────────────────────
from trackhub.db.base import Base

from .user import User

# ────────────────────────────────────────────────
# Project and project-scoped models
# ────────────────────────────────────────────────
from .project import Project, UserToProject
from .question import FILES_REFERENCES_VERSION, Question
from .meeting import Issue, Meeting, MeetingStatus
from .commit import Commit
from .source import SourceFile

# ────────────────────────────────────────────────
# Billing / audit
# ────────────────────────────────────────────────
from .billing import StripeTransaction
from .audit import AuditLog

__all__ = [
    "Base",
    "User",
    "Project",
    "UserToProject",
    "Question",
    "FILES_REFERENCES_VERSION",
    "Meeting",
    "MeetingStatus",
    "Issue",
    "Commit",
    "SourceFile",
    "StripeTransaction",
    "AuditLog",
]
