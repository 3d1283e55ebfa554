# apps/api/trackhub/db/models/audit.py
"""
AuditLog model for Track-Hub
Tracks project lifecycle, repository writes and credit purchases.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from trackhub.db.base import Base, utcnow


class AuditLog(Base):
    """
    Audit log entry.
    Records important actions with context (who, what, when, where).
    """

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    event_id: Mapped[str] = mapped_column(
        String(36),
        default=lambda: str(uuid.uuid4()),
        unique=True,
        nullable=False,
    )

    # Not a foreign key: audit rows outlive deleted accounts
    user_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        index=True,
        comment="Account that performed the action (null for system)",
    )

    action: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Action identifier (e.g. 'project_created', 'credits_purchased')",
    )

    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    request_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        fields = []
        for attr in ["id", "user_id", "action", "created_at"]:
            value = getattr(self, attr, None)
            if value is not None:
                fields.append(f"{attr}={value!r}")
        return f"AuditLog({', '.join(fields)})"
