# apps/api/trackhub/db/models/meeting.py
"""
Meetings uploaded against a project, and the issues extracted from them.
"""

import enum
import uuid
from typing import TYPE_CHECKING, List

from sqlalchemy import Enum as SQLEnum
from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trackhub.db.base import Base, TimestampMixin
from trackhub.db.models.mixins import UUIDMixin

if TYPE_CHECKING:
    from .project import Project


class MeetingStatus(str, enum.Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"


class Meeting(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "meetings"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    meeting_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    status: Mapped[MeetingStatus] = mapped_column(
        SQLEnum(MeetingStatus, name="meeting_status_enum", native_enum=False),
        default=MeetingStatus.PROCESSING,
        nullable=False,
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    project: Mapped["Project"] = relationship(back_populates="meetings")
    issues: Mapped[List["Issue"]] = relationship(
        back_populates="meeting",
        cascade="all, delete-orphan",
        order_by="Issue.created_at",
    )


class Issue(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "issues"

    start: Mapped[str] = mapped_column(String(32), nullable=False)
    end: Mapped[str] = mapped_column(String(32), nullable=False)
    gist: Mapped[str] = mapped_column(Text, nullable=False)
    headline: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)

    meeting_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("meetings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    meeting: Mapped["Meeting"] = relationship(back_populates="issues")
