# apps/api/trackhub/db/models/question.py
"""
Q&A record over a project's indexed codebase.
"""

import uuid
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trackhub.db.base import Base, TimestampMixin
from trackhub.db.models.mixins import UUIDMixin

if TYPE_CHECKING:
    from .project import Project
    from .user import User

FILES_REFERENCES_VERSION = 1


class Question(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "questions"

    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)

    # Opaque document; the version tags its shape
    files_references: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    files_references_version: Mapped[int] = mapped_column(
        Integer,
        default=FILES_REFERENCES_VERSION,
        nullable=False,
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    project: Mapped["Project"] = relationship(back_populates="questions")
    user: Mapped["User"] = relationship(back_populates="questions")
