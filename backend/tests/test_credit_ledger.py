"""
Tests for the credit ledger: debit, refund, and subscription compatibility.
"""

from datetime import date, timedelta

import pytest

from studio_booking.core.exceptions import InsufficientCredit, InvalidRequest, NotFound
from studio_booking.models.class_instance import ClassInstance
from studio_booking.models.subscription import Subscription
from studio_booking.services import credit_ledger

from conftest import make_subscription


@pytest.mark.asyncio
async def test_debit_decrements_balance(db_session, test_subscription):
    new_balance = await credit_ledger.debit(db_session, test_subscription.id, date.today())
    assert new_balance == 9
    assert await credit_ledger.balance(db_session, test_subscription.id) == 9


@pytest.mark.asyncio
async def test_debit_never_underflows(db_session, test_user):
    subscription = await make_subscription(db_session, test_user, credits=0)

    with pytest.raises(InsufficientCredit):
        await credit_ledger.debit(db_session, subscription.id, date.today())

    assert await credit_ledger.balance(db_session, subscription.id) == 0


@pytest.mark.asyncio
async def test_debit_rejects_expired_subscription(db_session, test_user):
    today = date.today()
    subscription = await make_subscription(
        db_session,
        test_user,
        credits=5,
        start_date=today - timedelta(days=30),
        end_date=today - timedelta(days=1),
    )

    with pytest.raises(InsufficientCredit):
        await credit_ledger.debit(db_session, subscription.id, today)

    assert await credit_ledger.balance(db_session, subscription.id) == 5


@pytest.mark.asyncio
async def test_refund_applies_to_cancelled_subscription(db_session, test_user):
    """A credit consumed on a since-replaced subscription still comes back to it."""
    subscription = await make_subscription(db_session, test_user, credits=0, status="cancelled")

    assert await credit_ledger.credit(db_session, subscription.id) == 1


@pytest.mark.asyncio
async def test_find_active_subscription_prefers_newest(db_session, test_user):
    await make_subscription(db_session, test_user, credits=3)
    newest = await make_subscription(db_session, test_user, credits=8)
    await make_subscription(db_session, test_user, credits=20, status="expired")

    found = await credit_ledger.find_active_subscription(db_session, test_user.id, date.today())
    assert found.id == newest.id


@pytest.mark.asyncio
async def test_find_active_subscription_none(db_session, test_user):
    assert await credit_ledger.find_active_subscription(db_session, test_user.id, date.today()) is None


@pytest.mark.parametrize(
    "sub_category, access, class_category, equipment, expected",
    [
        ("group", "both", "group", "reformer", (True, None)),
        ("daypass", "mat", "group", "mat", (True, None)),
        ("group", "mat", "group", "reformer", (False, "equipment_not_included")),
        ("personal", "both", "group", "mat", (False, "personal_subscription_requires_personal_class")),
        ("daypass", "both", "personal", "mat", (False, "personal_class_requires_personal_subscription")),
        ("personal", "reformer", "personal", "reformer", (True, None)),
    ],
)
def test_is_compatible(sub_category, access, class_category, equipment, expected):
    subscription = Subscription(category=sub_category, equipment_access=access)
    class_ = ClassInstance(category=class_category, equipment_type=equipment)

    assert credit_ledger.is_compatible(subscription, class_) == expected


@pytest.mark.asyncio
async def test_adjust_adds_and_removes_credits(db_session, test_subscription):
    assert await credit_ledger.adjust(db_session, test_subscription.id, 5) == 15
    assert await credit_ledger.adjust(db_session, test_subscription.id, -15) == 0


@pytest.mark.asyncio
async def test_adjust_removal_below_zero_leaves_balance_unchanged(db_session, test_user):
    subscription = await make_subscription(db_session, test_user, credits=2)

    with pytest.raises(InsufficientCredit) as exc_info:
        await credit_ledger.adjust(db_session, subscription.id, -3)

    assert exc_info.value.details["remaining_credits"] == 2
    assert await credit_ledger.balance(db_session, subscription.id) == 2


@pytest.mark.asyncio
async def test_adjust_rejects_inactive_subscription(db_session, test_user):
    subscription = await make_subscription(db_session, test_user, credits=4, status="cancelled")

    with pytest.raises(InvalidRequest):
        await credit_ledger.adjust(db_session, subscription.id, 1)

    assert await credit_ledger.balance(db_session, subscription.id) == 4


@pytest.mark.asyncio
async def test_adjust_unknown_subscription(db_session):
    with pytest.raises(NotFound):
        await credit_ledger.adjust(db_session, 9999, 1)
