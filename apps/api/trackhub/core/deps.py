"""
Centralized FastAPI dependencies for the Track-Hub API.
All reusable dependencies (db session, current user, GitHub client factory,
file counter, job dispatcher) are defined here and overridable in tests
through app.dependency_overrides.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from trackhub.core.config import Settings, get_settings
from trackhub.db.session import get_db
from trackhub.middleware.auth import AuthUser, get_current_user
from trackhub.services.file_counter import FileCounter, RepositoryFileCounter
from trackhub.services.github import GitHubClientFactory, default_client_factory
from trackhub.services.jobs import BackgroundJobs

# ────────────────────────────────────────────────
# Collaborator factories
# ────────────────────────────────────────────────

def get_github_client_factory() -> GitHubClientFactory:
    return default_client_factory


def get_file_counter(
    client_factory: Annotated[GitHubClientFactory, Depends(get_github_client_factory)],
) -> FileCounter:
    return RepositoryFileCounter(client_factory)


def get_job_dispatcher() -> BackgroundJobs:
    return BackgroundJobs()


# ────────────────────────────────────────────────
# Common dependencies (use these in routers via Annotated)
# ────────────────────────────────────────────────

# Database session (async)
DBSession = Annotated[AsyncSession, Depends(get_db)]

# Current authenticated user (from the Bearer JWT)
CurrentUser = Annotated[AuthUser, Depends(get_current_user)]

AppSettings = Annotated[Settings, Depends(get_settings)]

GitHubClients = Annotated[GitHubClientFactory, Depends(get_github_client_factory)]

FileCounterDep = Annotated[FileCounter, Depends(get_file_counter)]

Jobs = Annotated[BackgroundJobs, Depends(get_job_dispatcher)]


# Rate limiting key function (used with slowapi)
def get_user_id_or_ip(request: Request) -> str:
    """Prefer authenticated account id, fallback to IP."""
    user = getattr(request.state, "user", None)
    if user and getattr(user, "id", None):
        return f"user:{user.id}"
    return request.client.host if request.client else "anonymous"
