# apps/api/trackhub/routers/meetings.py
"""
Meetings Router - Track-Hub
Upload and browse project meetings; issues are attached by the
transcription pipeline.
"""

import uuid
from typing import List

from fastapi import APIRouter, status

from trackhub.core.deps import CurrentUser, DBSession
from trackhub.schemas import MeetingIn, MeetingOut
from trackhub.services.meetings import MeetingService

router = APIRouter(tags=["Meetings"])


@router.post(
    "/projects/{project_id}/meetings",
    response_model=MeetingOut,
    status_code=status.HTTP_201_CREATED,
)
async def upload_meeting(
    project_id: uuid.UUID,
    payload: MeetingIn,
    current_user: CurrentUser,
    db: DBSession,
):
    return await MeetingService(db).upload_meeting(
        current_user.id, project_id, meeting_url=payload.meeting_url, name=payload.name
    )


@router.get("/projects/{project_id}/meetings", response_model=List[MeetingOut])
async def get_meetings(project_id: uuid.UUID, current_user: CurrentUser, db: DBSession):
    return await MeetingService(db).get_meetings(current_user.id, project_id)


@router.get("/meetings/{meeting_id}", response_model=MeetingOut)
async def get_meeting(meeting_id: uuid.UUID, current_user: CurrentUser, db: DBSession):
    return await MeetingService(db).get_meeting(current_user.id, meeting_id)


@router.delete("/meetings/{meeting_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meeting(meeting_id: uuid.UUID, current_user: CurrentUser, db: DBSession):
    await MeetingService(db).delete_meeting(current_user.id, meeting_id)
