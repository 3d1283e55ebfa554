"""
Billing Service - Track-Hub
Credit balance, purchase history and Stripe Checkout for buying credits.
Fulfilment is idempotent on the Checkout session id.
"""

import logging
from typing import Any, Dict, Optional, Sequence

import stripe
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trackhub.core.config import Settings
from trackhub.core.errors import ConfigurationError, NotFound, PaymentError
from trackhub.db.models import StripeTransaction, User
from trackhub.monitoring.metrics import credits_purchased_total

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────
# Balance / history
# ────────────────────────────────────────────────
async def get_my_credits(session: AsyncSession, user_id: str) -> int:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("Account not found")
    return user.credits


async def get_purchase_history(
    session: AsyncSession, user_id: str
) -> Sequence[StripeTransaction]:
    result = await session.execute(
        select(StripeTransaction)
        .where(StripeTransaction.user_id == user_id)
        .order_by(StripeTransaction.created_at.desc())
    )
    return result.scalars().all()


# ────────────────────────────────────────────────
# Stripe Checkout
# ────────────────────────────────────────────────
def _require_stripe(settings: Settings) -> str:
    if settings.STRIPE_SECRET_KEY is None or not settings.STRIPE_SECRET_KEY.get_secret_value():
        raise ConfigurationError("Payments are not configured.")
    return settings.STRIPE_SECRET_KEY.get_secret_value()


async def create_checkout_session(
    session: AsyncSession,
    settings: Settings,
    user_id: str,
    credits: int,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> Dict[str, str]:
    api_key = _require_stripe(settings)
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("Account not found")

    frontend = str(settings.FRONTEND_URL).rstrip("/")
    try:
        checkout = await run_in_threadpool(
            stripe.checkout.Session.create,
            api_key=api_key,
            mode="payment",
            client_reference_id=user_id,
            customer_email=user.email,
            line_items=[
                {
                    "price_data": {
                        "currency": "usd",
                        "unit_amount": settings.CREDIT_PRICE_USD_CENTS,
                        "product_data": {"name": f"{credits} Track-Hub credits"},
                    },
                    "quantity": credits,
                }
            ],
            metadata={"user_id": user_id, "credits": str(credits)},
            success_url=success_url or f"{frontend}/billing?success=true",
            cancel_url=cancel_url or f"{frontend}/billing",
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe error: {e}", extra={"user_id": user_id})
        raise PaymentError(getattr(e, "user_message", None) or "Payment service error") from e

    logger.info(
        f"Checkout session created: {checkout.id}",
        extra={"user_id": user_id, "credits": credits},
    )
    return {"session_id": checkout.id, "url": checkout.url}


def construct_webhook_event(settings: Settings, payload: bytes, signature: Optional[str]) -> Any:
    if settings.STRIPE_WEBHOOK_SECRET is None:
        raise ConfigurationError("Payments are not configured.")
    try:
        return stripe.Webhook.construct_event(
            payload,
            signature or "",
            settings.STRIPE_WEBHOOK_SECRET.get_secret_value(),
        )
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"Rejected Stripe webhook: {e}")
        raise PaymentError("Invalid webhook signature") from e


async def fulfill_checkout(
    session: AsyncSession, checkout: Dict[str, Any]
) -> Optional[StripeTransaction]:
    """Record a paid Checkout session and add its credits.

    Returns None when the session was already fulfilled, is unpaid, or
    names an account that does not exist.
    """
    session_id = checkout.get("id")
    metadata = checkout.get("metadata") or {}
    user_id = metadata.get("user_id") or checkout.get("client_reference_id")
    try:
        credits = int(metadata.get("credits", 0))
    except (TypeError, ValueError):
        credits = 0

    if not session_id or not user_id or credits <= 0:
        raise PaymentError("Malformed checkout session")
    if checkout.get("payment_status") != "paid":
        logger.info(f"Checkout {session_id} not paid yet; skipping")
        return None

    existing = await session.execute(
        select(StripeTransaction.id).where(StripeTransaction.stripe_session_id == session_id)
    )
    if existing.scalar_one_or_none() is not None:
        logger.info(f"Checkout {session_id} already fulfilled")
        return None

    if await session.get(User, user_id) is None:
        # Acknowledged without crediting; reconciled by hand
        logger.error(
            f"Paid checkout {session_id} references unknown account {user_id}",
            extra={"user_id": user_id, "credits": credits},
        )
        return None

    transaction = StripeTransaction(
        user_id=user_id,
        credits=credits,
        stripe_session_id=session_id,
        amount_total=int(checkout.get("amount_total") or 0),
        currency=checkout.get("currency") or "usd",
    )
    try:
        session.add(transaction)
        await session.flush()
        result = await session.execute(
            update(User)
            .where(User.id == user_id)
            .values(credits=User.credits + credits)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            await session.rollback()
            logger.error(
                f"Account {user_id} removed while fulfilling checkout {session_id}",
                extra={"user_id": user_id, "credits": credits},
            )
            return None
        await session.commit()
    except IntegrityError:
        # Concurrent delivery of the same event won the insert
        await session.rollback()
        logger.info(f"Checkout {session_id} fulfilled concurrently")
        return None
    except Exception:
        await session.rollback()
        raise

    credits_purchased_total.inc(credits)
    logger.info(
        f"Credited {credits} to {user_id} (checkout {session_id})",
        extra={"user_id": user_id, "credits": credits},
    )
    return transaction
