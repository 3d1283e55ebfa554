"""
Project catalogue - Track-Hub
Listing, soft deletion, team members, commit history (refresh-on-read)
and persistence of the GitHub token handed over by the OAuth flow.
"""

import logging
import uuid
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from trackhub.db.base import utcnow
from trackhub.db.models import Commit, Project, UserToProject
from trackhub.services.admission import JobDispatcher
from trackhub.services.membership import MembershipGuard

logger = logging.getLogger(__name__)


class ProjectService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.guard = MembershipGuard(session)

    async def list_projects(self, user_id: str) -> Sequence[Project]:
        result = await self.session.execute(
            select(Project)
            .join(UserToProject, UserToProject.project_id == Project.id)
            .where(UserToProject.user_id == user_id, Project.deleted_at.is_(None))
            .order_by(Project.created_at.desc())
        )
        return result.scalars().all()

    async def delete_project(self, user_id: str, project_id: uuid.UUID) -> Project:
        project = await self.guard.authorize_project(user_id, project_id)
        project.deleted_at = utcnow()
        await self.session.commit()
        logger.info(
            f"Project soft-deleted: {project_id}",
            extra={"user_id": user_id, "project_id": str(project_id)},
        )
        return project

    async def get_team_members(
        self, user_id: str, project_id: uuid.UUID
    ) -> Sequence[UserToProject]:
        await self.guard.authorize_project(user_id, project_id)
        result = await self.session.execute(
            select(UserToProject)
            .options(selectinload(UserToProject.user))
            .where(UserToProject.project_id == project_id)
            .order_by(UserToProject.created_at)
        )
        return result.scalars().all()

    async def get_commits(
        self,
        user_id: str,
        project_id: uuid.UUID,
        jobs: JobDispatcher,
    ) -> Sequence[Commit]:
        """Stored commits, newest first. Also enqueues a poll for next time."""
        await self.guard.authorize_project(user_id, project_id)
        jobs.poll_commits(project_id)
        result = await self.session.execute(
            select(Commit)
            .where(Commit.project_id == project_id)
            .order_by(Commit.committed_at.desc())
        )
        return result.scalars().all()

    async def store_github_token(
        self, user_id: str, project_id: uuid.UUID, token: str
    ) -> Project:
        project = await self.guard.authorize_project(user_id, project_id)
        project.github_token = token
        await self.session.commit()
        logger.info(
            "GitHub token stored",
            extra={"user_id": user_id, "project_id": str(project_id)},
        )
        return project
