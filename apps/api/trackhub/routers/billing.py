# apps/api/trackhub/routers/billing.py
"""
Billing Router - Track-Hub
Credit balance, purchase history, Stripe Checkout for buying credits and
the Stripe webhook that fulfils paid sessions.
All endpoints except the webhook require authentication.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Header, Request

from trackhub.core.deps import AppSettings, CurrentUser, DBSession
from trackhub.middleware.rate_limit import CHECKOUT_LIMIT, limiter
from trackhub.schemas import CheckoutOut, CheckoutRequest, CreditsOut, PurchaseOut
from trackhub.services.audit import audit_log
from trackhub.services.billing import (
    construct_webhook_event,
    create_checkout_session,
    fulfill_checkout,
    get_my_credits,
    get_purchase_history,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


# ────────────────────────────────────────────────
# Balance & history (for dashboard)
# ────────────────────────────────────────────────
@router.get("/credits", response_model=CreditsOut)
async def my_credits(current_user: CurrentUser, db: DBSession):
    return CreditsOut(credits=await get_my_credits(db, current_user.id))


@router.get("/purchases", response_model=List[PurchaseOut])
async def purchase_history(current_user: CurrentUser, db: DBSession):
    return await get_purchase_history(db, current_user.id)


# ────────────────────────────────────────────────
# Create Checkout Session (buy credits)
# ────────────────────────────────────────────────
@router.post("/checkout", response_model=CheckoutOut)
@limiter.limit(CHECKOUT_LIMIT)
async def create_billing_session(
    request: Request,
    payload: CheckoutRequest,
    current_user: CurrentUser,
    db: DBSession,
    settings: AppSettings,
):
    """
    Generate a Stripe Checkout session for a credit purchase.
    Returns the session URL to redirect the user to.
    """
    session = await create_checkout_session(
        db,
        settings,
        current_user.id,
        credits=payload.credits,
        success_url=payload.success_url,
        cancel_url=payload.cancel_url,
    )

    audit_log(
        action="billing_checkout_created",
        user_id=current_user.id,
        metadata={"credits": payload.credits, "session_id": session["session_id"]},
        request=request,
    )
    return session


# ────────────────────────────────────────────────
# Stripe webhook (signature-verified, unauthenticated)
# ────────────────────────────────────────────────
@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: DBSession,
    settings: AppSettings,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
):
    payload = await request.body()
    event = construct_webhook_event(settings, payload, stripe_signature)

    if event["type"] != "checkout.session.completed":
        logger.debug(f"Ignoring Stripe event {event['type']}")
        return {"received": True}

    checkout = event["data"]["object"]
    transaction = await fulfill_checkout(db, checkout.to_dict())
    if transaction is not None:
        audit_log(
            action="credits_purchased",
            user_id=transaction.user_id,
            metadata={
                "credits": transaction.credits,
                "session_id": transaction.stripe_session_id,
            },
            request=request,
        )
    return {"received": True, "fulfilled": transaction is not None}
