"""
Membership Guard - Track-Hub
Authorization is a single predicate: a membership row exists for
(account, project). Any member has full rights on the project.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trackhub.core.errors import NotFound, Unauthorized
from trackhub.db.models import Project, UserToProject

logger = logging.getLogger(__name__)


class MembershipGuard:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def is_member(self, user_id: str, project_id: uuid.UUID) -> bool:
        return await self._membership(user_id, project_id) is not None

    async def authorize(self, user_id: str, project_id: uuid.UUID) -> UserToProject:
        membership = await self._membership(user_id, project_id)
        if membership is None:
            logger.info(
                "Membership check failed",
                extra={"user_id": user_id, "project_id": str(project_id)},
            )
            raise Unauthorized("You are not a member of this project")
        return membership

    async def authorize_project(self, user_id: str, project_id: uuid.UUID) -> Project:
        """Authorize, then load the project. Soft-deleted projects are NotFound."""
        await self.authorize(user_id, project_id)
        project = await self.session.get(Project, project_id)
        if project is None or project.deleted_at is not None:
            raise NotFound("Project not found")
        return project

    async def _membership(self, user_id: str, project_id: uuid.UUID) -> UserToProject | None:
        result = await self.session.execute(
            select(UserToProject).where(
                UserToProject.user_id == user_id,
                UserToProject.project_id == project_id,
            )
        )
        return result.scalar_one_or_none()
