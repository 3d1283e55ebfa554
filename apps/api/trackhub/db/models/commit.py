# apps/api/trackhub/db/models/commit.py
"""
Polled commit history for a project's repository.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trackhub.db.base import Base, TimestampMixin
from trackhub.db.models.mixins import UUIDMixin

if TYPE_CHECKING:
    from .project import Project


class Commit(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "commits"
    __table_args__ = (
        UniqueConstraint("project_id", "commit_hash", name="uq_commits_project_hash"),
    )

    commit_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    commit_message: Mapped[str] = mapped_column(Text, nullable=False)
    author_name: Mapped[str] = mapped_column(String(255), nullable=False)
    author_avatar: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    committed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    summary: Mapped[str] = mapped_column(Text, default="", nullable=False)

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    project: Mapped["Project"] = relationship(back_populates="commits")
