# apps/api/trackhub/db/models/billing.py
"""
Credit purchases fulfilled through Stripe Checkout.
"""

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from trackhub.db.base import Base, TimestampMixin
from trackhub.db.models.mixins import UUIDMixin


class StripeTransaction(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "stripe_transactions"
    __table_args__ = (
        CheckConstraint("credits > 0", name="ck_stripe_transactions_credits_positive"),
    )

    user_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    credits: Mapped[int] = mapped_column(Integer, nullable=False)

    # Unique: webhook redelivery must not credit twice
    stripe_session_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    amount_total: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), default="usd", nullable=False)
