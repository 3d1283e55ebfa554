# apps/api/trackhub/db/models/source.py
"""
Indexed repository content, one row per file.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trackhub.db.base import Base, TimestampMixin
from trackhub.db.models.mixins import UUIDMixin

if TYPE_CHECKING:
    from .project import Project


class SourceFile(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "source_files"
    __table_args__ = (
        UniqueConstraint("project_id", "file_name", name="uq_source_files_project_file"),
    )

    file_name: Mapped[str] = mapped_column(String(1024), nullable=False)
    source_code: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str] = mapped_column(Text, default="", nullable=False)

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    project: Mapped["Project"] = relationship(back_populates="source_files")
