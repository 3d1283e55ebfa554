# apps/api/trackhub/db/base.py
"""
SQLAlchemy declarative base for Track-Hub.
All models inherit from this Base class.

This file defines:
- Base declarative class (safe __repr__)
- TimestampMixin (created_at / updated_at)
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models in Track-Hub.

    Define __tablename__ explicitly in each model.
    """

    @classmethod
    def get_column_names(cls) -> list[str]:
        return [c.key for c in cls.__table__.columns]

    def __repr__(self) -> str:
        """Avoids loading relationships or lazy fields."""
        fields = ", ".join(
            f"{k}={v!r}"
            for k, v in self.__dict__.items()
            if not k.startswith("_") and v is not None and not isinstance(v, (list, Base))
        )
        return f"{self.__class__.__name__}({fields})"


class TimestampMixin:
    # Python-side defaults keep sub-second ordering on every backend
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
