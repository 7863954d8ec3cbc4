from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.src import exceptions, validators
from app.src.db import Order, User
from app.src.enums import AccountStatus, AuctionStatus, BillingStatus, OrderStatus, UserRole
from app.src.functions import enumStr, isPast, isValidTransition, percentageOf, toMoney
from app.src.policy import PERMISSIONS, Action, authorize, isAllowed, orderAccess
from app.src.transitions import (
    AUCTION_STATUS_TRANSITION,
    BILLING_STATUS_TRANSITION,
    ORDER_STATUS_TRANSITION,
)


@pytest.mark.parametrize(
    "old, new, allowed",
    [
        (OrderStatus.OPEN, OrderStatus.ASSIGNED, True),
        (OrderStatus.ASSIGNED, OrderStatus.OPEN, True),
        (OrderStatus.ASSIGNED, OrderStatus.IN_PROGRESS, True),
        (OrderStatus.IN_PROGRESS, OrderStatus.COMPLETED, True),
        (OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED, True),
        (OrderStatus.OPEN, OrderStatus.COMPLETED, False),
        (OrderStatus.IN_PROGRESS, OrderStatus.ASSIGNED, False),
        (OrderStatus.COMPLETED, OrderStatus.CANCELLED, False),
        (OrderStatus.CANCELLED, OrderStatus.CANCELLED, False),
    ],
)
def test_order_transitions(old, new, allowed):
    assert isValidTransition(ORDER_STATUS_TRANSITION, old, new) is allowed


def test_terminal_states_have_no_exit():
    assert ORDER_STATUS_TRANSITION[OrderStatus.COMPLETED] == []
    assert ORDER_STATUS_TRANSITION[OrderStatus.CANCELLED] == []
    assert AUCTION_STATUS_TRANSITION[AuctionStatus.SOLD] == []
    assert BILLING_STATUS_TRANSITION[BillingStatus.PAID] == []


def test_raw_store_values_match_enum_keys():
    assert isValidTransition(ORDER_STATUS_TRANSITION, 1, 2)
    assert not isValidTransition({}, OrderStatus.OPEN, OrderStatus.ASSIGNED)
    assert not isValidTransition(ORDER_STATUS_TRANSITION, 99, OrderStatus.OPEN)


def test_rejected_transition_names_the_column():
    with pytest.raises(exceptions.InvalidStateTransition):
        validators.stateTransition(
            ORDER_STATUS_TRANSITION,
            OrderStatus.COMPLETED,
            OrderStatus.OPEN,
            Order.status,
        )


def test_every_action_has_a_rule():
    assert set(PERMISSIONS) == set(Action)


@pytest.mark.parametrize(
    "role, action, allowed",
    [
        (UserRole.ADMIN, Action.CREATE_AUCTION, True),
        (UserRole.DISPONENT, Action.CREATE_AUCTION, False),
        (UserRole.DISPONENT, Action.CREATE_ORDER, True),
        (UserRole.DRIVER, Action.CREATE_ORDER, False),
        (UserRole.DRIVER, Action.PURCHASE_AUCTION, True),
        (UserRole.ADMIN, Action.PURCHASE_AUCTION, False),
        (UserRole.DISPONENT, Action.VIEW_BILLING, False),
        (UserRole.DRIVER, Action.DECIDE_BILLING, False),
    ],
)
def test_role_rules(role, action, allowed):
    user = User(role=role, status=AccountStatus.ACTIVE)
    assert isAllowed(user, action) is allowed


def test_authorize_raises_for_denied_roles():
    with pytest.raises(exceptions.NoPermission):
        authorize(User(role=UserRole.DRIVER), Action.DELETE_ORDER)
    assert not isAllowed(None, Action.VIEW_ORDER)


def test_order_scope():
    order = Order(created_by_id=10, assigned_driver_id=20)

    assert orderAccess(User(id=1, role=UserRole.ADMIN), order)
    assert orderAccess(User(id=10, role=UserRole.DISPONENT), order)
    assert orderAccess(User(id=20, role=UserRole.DRIVER), order)
    with pytest.raises(exceptions.NoPermission):
        orderAccess(User(id=11, role=UserRole.DISPONENT), order)
    with pytest.raises(exceptions.NoPermission):
        orderAccess(User(id=10, role=UserRole.DRIVER), order)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("100", Decimal("100.00")),
        (Decimal("0.005"), Decimal("0.01")),
        (12.345, Decimal("12.35")),
        (Decimal("-1.005"), Decimal("-1.01")),
    ],
)
def test_money_rounds_half_up(value, expected):
    assert toMoney(value) == expected


@pytest.mark.parametrize(
    "amount, fee",
    [
        (Decimal("100.00"), Decimal("10.00")),
        (Decimal("123.45"), Decimal("12.35")),
        (Decimal("0.05"), Decimal("0.01")),
        (Decimal("99999999.99"), Decimal("10000000.00")),
    ],
)
def test_ten_percent_fee(amount, fee):
    assert percentageOf(amount, Decimal("0.10")) == fee


def test_is_past_reads_naive_values_as_utc():
    now = datetime.now(timezone.utc)

    assert isPast(now - timedelta(seconds=5))
    assert not isPast(now + timedelta(minutes=5))
    assert isPast((now - timedelta(seconds=5)).replace(tzinfo=None))
    assert not isPast((now + timedelta(minutes=5)).replace(tzinfo=None))


def test_enum_str():
    assert enumStr(AuctionStatus) == "ACTIVE: 1, SOLD: 2, CANCELLED: 3"


def test_account_must_be_active():
    assert validators.activeAccount(User(status=AccountStatus.ACTIVE))
    with pytest.raises(exceptions.InactiveAccount):
        validators.activeAccount(User(status=AccountStatus.PENDING))
