# apps/api/trackhub/routers/repository.py
"""
Repository Router - Track-Hub
Branch listing, multi-file commits and GitHub token storage for a project.
"""

import logging
import uuid
from typing import List

from fastapi import APIRouter, Request, status

from trackhub.core.deps import AppSettings, CurrentUser, DBSession, GitHubClients
from trackhub.middleware.rate_limit import COMMIT_LIMIT, limiter
from trackhub.schemas import CommitRequest, CommitResult, GitHubTokenIn
from trackhub.services.audit import audit_log
from trackhub.services.branches import list_branches
from trackhub.services.commit_composer import FileChange, commit_files
from trackhub.services.projects import ProjectService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects/{project_id}/repository", tags=["Repository"])


@router.get("/branches", response_model=List[str])
async def get_branches(
    project_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    settings: AppSettings,
    client_factory: GitHubClients,
):
    return await list_branches(db, settings, client_factory, current_user.id, project_id)


@router.post("/commits", response_model=CommitResult, status_code=status.HTTP_201_CREATED)
@limiter.limit(COMMIT_LIMIT)
async def commit_to_repo(
    request: Request,
    project_id: uuid.UUID,
    payload: CommitRequest,
    current_user: CurrentUser,
    db: DBSession,
    settings: AppSettings,
    client_factory: GitHubClients,
):
    """Push one commit holding the submitted files onto the branch head."""
    sha = await commit_files(
        db,
        settings,
        client_factory,
        current_user.id,
        project_id,
        branch=payload.branch,
        message=payload.message,
        files=[FileChange(path=f.path, content=f.content) for f in payload.files],
    )

    audit_log(
        action="repository_commit_pushed",
        user_id=current_user.id,
        metadata={
            "project_id": str(project_id),
            "branch": payload.branch,
            "sha": sha,
            "paths": [f.path for f in payload.files],
        },
        request=request,
    )
    return CommitResult(sha=sha)


@router.put("/token", status_code=status.HTTP_204_NO_CONTENT)
async def store_github_token(
    request: Request,
    project_id: uuid.UUID,
    payload: GitHubTokenIn,
    current_user: CurrentUser,
    db: DBSession,
):
    """Persist the access token obtained by the GitHub OAuth flow."""
    await ProjectService(db).store_github_token(current_user.id, project_id, payload.token)
    audit_log(
        action="github_token_stored",
        user_id=current_user.id,
        metadata={"project_id": str(project_id)},
        request=request,
    )
