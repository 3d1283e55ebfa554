# apps/api/trackhub/routers/questions.py
"""
Questions Router - Track-Hub
Saved Q&A answers for a project.
"""

import uuid
from typing import List

from fastapi import APIRouter, status

from trackhub.core.deps import CurrentUser, DBSession
from trackhub.schemas import AnswerIn, QuestionOut, QuestionWithAuthor
from trackhub.services.questions import get_questions, save_answer

router = APIRouter(prefix="/projects/{project_id}/questions", tags=["Questions"])


@router.post("", response_model=QuestionOut, status_code=status.HTTP_201_CREATED)
async def save_question_answer(
    project_id: uuid.UUID,
    payload: AnswerIn,
    current_user: CurrentUser,
    db: DBSession,
):
    return await save_answer(
        db,
        current_user.id,
        project_id,
        question=payload.question,
        answer=payload.answer,
        files_references=payload.files_references,
    )


@router.get("", response_model=List[QuestionWithAuthor])
async def list_questions(project_id: uuid.UUID, current_user: CurrentUser, db: DBSession):
    return await get_questions(db, current_user.id, project_id)
