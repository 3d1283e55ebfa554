# apps/api/trackhub/routers/projects.py
"""
Projects Router - Track-Hub
Credits-gated project creation, credit preview, listing, soft deletion,
team members and commit history.
"""

import logging
import uuid
from typing import List

from fastapi import APIRouter, Request, status

from trackhub.core.deps import (
    AppSettings,
    CurrentUser,
    DBSession,
    FileCounterDep,
    Jobs,
)
from trackhub.middleware.rate_limit import CHECK_CREDITS_LIMIT, CREATE_PROJECT_LIMIT, limiter
from trackhub.schemas import (
    CommitOut,
    CreditCheckOut,
    CreditCheckRequest,
    MemberOut,
    ProjectCreate,
    ProjectOut,
)
from trackhub.services.admission import AdmissionController
from trackhub.services.audit import audit_log
from trackhub.services.projects import ProjectService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["Projects"])


# ────────────────────────────────────────────────
# Admission
# ────────────────────────────────────────────────
@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(CREATE_PROJECT_LIMIT)
async def create_project(
    request: Request,
    payload: ProjectCreate,
    current_user: CurrentUser,
    db: DBSession,
    settings: AppSettings,
    file_counter: FileCounterDep,
    jobs: Jobs,
):
    """
    Price the repository in files, debit that many credits and create the
    project. Indexing and commit polling start in the background.
    """
    controller = AdmissionController(db, settings, file_counter, jobs)
    project = await controller.create_project(
        current_user.id,
        name=payload.name,
        repo_url=payload.repo_url,
        github_token=payload.github_token,
    )

    audit_log(
        action="project_created",
        user_id=current_user.id,
        metadata={"project_id": str(project.id), "repo_url": project.repo_url},
        request=request,
    )
    return project


@router.post("/check-credits", response_model=CreditCheckOut)
@limiter.limit(CHECK_CREDITS_LIMIT)
async def check_credits(
    request: Request,
    payload: CreditCheckRequest,
    current_user: CurrentUser,
    db: DBSession,
    settings: AppSettings,
    file_counter: FileCounterDep,
    jobs: Jobs,
):
    """Preview the cost of a repository against the caller's balance."""
    controller = AdmissionController(db, settings, file_counter, jobs)
    result = await controller.check_credits(
        current_user.id,
        repo_url=payload.repo_url,
        github_token=payload.github_token,
    )
    return CreditCheckOut(file_count=result.file_count, credits=result.credits)


# ────────────────────────────────────────────────
# Catalogue
# ────────────────────────────────────────────────
@router.get("", response_model=List[ProjectOut])
async def list_projects(current_user: CurrentUser, db: DBSession):
    return await ProjectService(db).list_projects(current_user.id)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    request: Request,
    project_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
):
    await ProjectService(db).delete_project(current_user.id, project_id)
    audit_log(
        action="project_deleted",
        user_id=current_user.id,
        metadata={"project_id": str(project_id)},
        request=request,
    )


@router.get("/{project_id}/members", response_model=List[MemberOut])
async def get_team_members(project_id: uuid.UUID, current_user: CurrentUser, db: DBSession):
    return await ProjectService(db).get_team_members(current_user.id, project_id)


@router.get("/{project_id}/commits", response_model=List[CommitOut])
async def get_commits(
    project_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    jobs: Jobs,
):
    """Stored commits, newest first. Each read also queues a fresh poll."""
    return await ProjectService(db).get_commits(current_user.id, project_id, jobs)
