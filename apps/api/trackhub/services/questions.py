"""
Q&A over a project's codebase - Track-Hub
"""

import uuid
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from trackhub.db.models import FILES_REFERENCES_VERSION, Question
from trackhub.services.membership import MembershipGuard


async def save_answer(
    session: AsyncSession,
    user_id: str,
    project_id: uuid.UUID,
    question: str,
    answer: str,
    files_references: Optional[Any] = None,
) -> Question:
    await MembershipGuard(session).authorize_project(user_id, project_id)
    record = Question(
        project_id=project_id,
        user_id=user_id,
        question=question,
        answer=answer,
        files_references=files_references,
        files_references_version=FILES_REFERENCES_VERSION,
    )
    session.add(record)
    await session.commit()
    return record


async def get_questions(
    session: AsyncSession,
    user_id: str,
    project_id: uuid.UUID,
) -> Sequence[Question]:
    """Newest first, with the authoring account loaded."""
    await MembershipGuard(session).authorize_project(user_id, project_id)
    result = await session.execute(
        select(Question)
        .options(selectinload(Question.user))
        .where(Question.project_id == project_id)
        .order_by(Question.created_at.desc())
    )
    return result.scalars().all()
