"""
Meetings - Track-Hub
Meeting-id operations resolve the meeting first, then authorize against
its project.
"""

import logging
import uuid
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from trackhub.core.errors import NotFound
from trackhub.db.models import Meeting, MeetingStatus
from trackhub.services.membership import MembershipGuard

logger = logging.getLogger(__name__)


class MeetingService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.guard = MembershipGuard(session)

    async def upload_meeting(
        self,
        user_id: str,
        project_id: uuid.UUID,
        meeting_url: str,
        name: str,
    ) -> Meeting:
        await self.guard.authorize_project(user_id, project_id)
        meeting = Meeting(
            project_id=project_id,
            meeting_url=meeting_url,
            name=name,
            status=MeetingStatus.PROCESSING,
            issues=[],
        )
        self.session.add(meeting)
        await self.session.commit()
        logger.info(
            f"Meeting uploaded: {meeting.id}",
            extra={"user_id": user_id, "project_id": str(project_id)},
        )
        return meeting

    async def get_meetings(self, user_id: str, project_id: uuid.UUID) -> Sequence[Meeting]:
        await self.guard.authorize_project(user_id, project_id)
        result = await self.session.execute(
            select(Meeting)
            .options(selectinload(Meeting.issues))
            .where(Meeting.project_id == project_id)
            .order_by(Meeting.created_at.desc())
        )
        return result.scalars().all()

    async def get_meeting(self, user_id: str, meeting_id: uuid.UUID) -> Meeting:
        meeting = await self._resolve(meeting_id)
        await self.guard.authorize_project(user_id, meeting.project_id)
        return meeting

    async def delete_meeting(self, user_id: str, meeting_id: uuid.UUID) -> None:
        meeting = await self._resolve(meeting_id)
        await self.guard.authorize_project(user_id, meeting.project_id)
        await self.session.delete(meeting)
        await self.session.commit()
        logger.info(f"Meeting deleted: {meeting_id}", extra={"user_id": user_id})

    async def _resolve(self, meeting_id: uuid.UUID) -> Meeting:
        result = await self.session.execute(
            select(Meeting)
            .options(selectinload(Meeting.issues))
            .where(Meeting.id == meeting_id)
        )
        meeting = result.scalar_one_or_none()
        if meeting is None:
            raise NotFound("Meeting not found")
        return meeting
