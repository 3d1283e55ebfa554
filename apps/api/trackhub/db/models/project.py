# apps/api/trackhub/db/models/project.py
"""
SQLAlchemy Project Model - Track-Hub
A GitHub repository linked to one or more accounts through memberships.
Soft-deleted projects stay in the table but are invisible to every operation.
"""

import uuid
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trackhub.db.base import Base, TimestampMixin
from trackhub.db.models.mixins import SoftDeleteMixin, UUIDMixin
from trackhub.db.models.types import EncryptedString

if TYPE_CHECKING:
    from .commit import Commit
    from .meeting import Meeting
    from .question import Question
    from .source import SourceFile
    from .user import User


class Project(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Project Entity
    - Created by the admission flow after the credit debit
    - github_token is written by the OAuth collaborator (encrypted at rest)
    """
    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    repo_url: Mapped[str] = mapped_column(String(1024), nullable=False)
    github_token: Mapped[Optional[str]] = mapped_column(EncryptedString, nullable=True)

    members: Mapped[List["UserToProject"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
    )
    questions: Mapped[List["Question"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
    )
    meetings: Mapped[List["Meeting"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
    )
    commits: Mapped[List["Commit"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
    )
    source_files: Mapped[List["SourceFile"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name={self.name!r}, repo_url={self.repo_url!r})>"

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None


class UserToProject(Base, UUIDMixin, TimestampMixin):
    """Membership: its existence is the only authorization predicate."""
    __tablename__ = "user_to_projects"
    __table_args__ = (
        UniqueConstraint("user_id", "project_id", name="uq_user_to_projects_user_project"),
    )

    user_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user: Mapped["User"] = relationship(back_populates="memberships")
    project: Mapped["Project"] = relationship(back_populates="members")
