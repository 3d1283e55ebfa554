from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import stripe
from pydantic import SecretStr
from sqlalchemy import select

from trackhub.core.errors import ConfigurationError, NotFound, PaymentError
from trackhub.db.models import StripeTransaction, User
from trackhub.services.billing import (
    create_checkout_session,
    fulfill_checkout,
    get_my_credits,
    get_purchase_history,
)


def paid_checkout(session_id="cs_test_1", user_id="user-1", credits=50, **overrides):
    checkout = {
        "id": session_id,
        "payment_status": "paid",
        "amount_total": credits * 2,
        "currency": "usd",
        "client_reference_id": user_id,
        "metadata": {"user_id": user_id, "credits": str(credits)},
    }
    checkout.update(overrides)
    return checkout


async def balance(session, user_id="user-1"):
    return (await session.execute(select(User.credits).where(User.id == user_id))).scalar_one()


@pytest.mark.asyncio
async def test_fulfilment_credits_the_account_once(session, make_user):
    await make_user(credits=10)

    first = await fulfill_checkout(session, paid_checkout())
    second = await fulfill_checkout(session, paid_checkout())

    assert first is not None and first.credits == 50
    assert second is None
    assert await balance(session) == 60
    history = await get_purchase_history(session, "user-1")
    assert [t.stripe_session_id for t in history] == ["cs_test_1"]


@pytest.mark.asyncio
async def test_unpaid_sessions_are_skipped(session, make_user):
    await make_user(credits=10)

    assert await fulfill_checkout(session, paid_checkout(payment_status="unpaid")) is None
    assert await balance(session) == 10
    assert (await session.execute(select(StripeTransaction))).scalars().all() == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"id": None},
        {"metadata": {"user_id": "user-1", "credits": "zero"}},
        {"metadata": {"user_id": "user-1", "credits": "0"}},
    ],
)
async def test_malformed_sessions_are_rejected(session, make_user, overrides):
    await make_user(credits=10)

    with pytest.raises(PaymentError):
        await fulfill_checkout(session, paid_checkout(**overrides))
    assert await balance(session) == 10


@pytest.mark.asyncio
async def test_fulfilment_for_unknown_account_is_acknowledged_without_credit(session, make_user):
    await make_user("user-1", credits=10)

    assert await fulfill_checkout(session, paid_checkout(user_id="ghost")) is None
    assert await balance(session) == 10
    assert (await session.execute(select(StripeTransaction))).scalars().all() == []


@pytest.mark.asyncio
async def test_balance_lookup(session, make_user):
    await make_user(credits=42)

    assert await get_my_credits(session, "user-1") == 42
    with pytest.raises(NotFound):
        await get_my_credits(session, "ghost")


@pytest.mark.asyncio
async def test_checkout_requires_stripe_configuration(session, settings, make_user, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", None)
    await make_user()

    with pytest.raises(ConfigurationError):
        await create_checkout_session(session, settings, "user-1", credits=100)


@pytest.fixture
def stripe_configured(settings, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", SecretStr("sk_test_trackhub"))
    return settings


@pytest.mark.asyncio
async def test_checkout_session_carries_account_and_credits(session, stripe_configured, make_user, monkeypatch):
    create = MagicMock(return_value=SimpleNamespace(id="cs_test_9", url="https://checkout.stripe.test/cs_test_9"))
    monkeypatch.setattr(stripe.checkout.Session, "create", create)
    await make_user()

    result = await create_checkout_session(session, stripe_configured, "user-1", credits=100)

    assert result == {"session_id": "cs_test_9", "url": "https://checkout.stripe.test/cs_test_9"}
    kwargs = create.call_args.kwargs
    assert kwargs["api_key"] == "sk_test_trackhub"
    assert kwargs["metadata"] == {"user_id": "user-1", "credits": "100"}
    assert kwargs["line_items"][0]["quantity"] == 100
    assert kwargs["line_items"][0]["price_data"]["unit_amount"] == stripe_configured.CREDIT_PRICE_USD_CENTS


@pytest.mark.asyncio
async def test_stripe_errors_become_payment_errors(session, stripe_configured, make_user, monkeypatch):
    create = MagicMock(side_effect=stripe.StripeError("Your card was declined."))
    monkeypatch.setattr(stripe.checkout.Session, "create", create)
    await make_user()

    with pytest.raises(PaymentError) as exc_info:
        await create_checkout_session(session, stripe_configured, "user-1", credits=10)
    assert exc_info.value.message == "Your card was declined."


@pytest.mark.asyncio
async def test_checkout_for_unknown_account(session, stripe_configured, monkeypatch):
    create = MagicMock()
    monkeypatch.setattr(stripe.checkout.Session, "create", create)

    with pytest.raises(NotFound):
        await create_checkout_session(session, stripe_configured, "ghost", credits=10)
    create.assert_not_called()
