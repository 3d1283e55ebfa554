# apps/api/trackhub/db/models/user.py
"""
SQLAlchemy User Model - Track-Hub
An account: identified by the external auth subject, holds the credit balance.
"""

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trackhub.core.config import settings
from trackhub.db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from .project import UserToProject
    from .question import Question


class User(Base, TimestampMixin):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_users_credits_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    credits: Mapped[int] = mapped_column(
        Integer,
        default=lambda: settings.FREE_TIER_CREDITS,
        nullable=False,
    )

    memberships: Mapped[List["UserToProject"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )
    questions: Mapped[List["Question"]] = relationship(back_populates="user")

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)
