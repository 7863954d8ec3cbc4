from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import event

from app.src import cleaner, exceptions
from app.src.core import approval as approvalCore
from app.src.core import order as orderCore
from app.src.db import Order, OrderApproval, UserToken
from app.src.enums import ApprovalStatus, ApprovalType, OrderStatus


def test_accepting_an_assignment_starts_the_order(session, admin, driver, makeOrder):
    order = makeOrder()
    approval = approvalCore.createApproval(
        session, admin, order.id, driver.id, ApprovalType.ASSIGNMENT
    )
    assert approval.status == ApprovalStatus.PENDING
    assert approval.proposed_price is None

    approval = approvalCore.respondToApproval(session, driver, approval.id, True)

    assert approval.status == ApprovalStatus.ACCEPTED
    assert approval.responded_on is not None
    session.expire_all()
    order = session.get(Order, order.id)
    assert order.status == OrderStatus.IN_PROGRESS
    assert order.assigned_driver_id == driver.id


def test_rejecting_leaves_the_order_alone(session, admin, driver, makeOrder):
    order = makeOrder()
    approval = approvalCore.createApproval(
        session, admin, order.id, driver.id, ApprovalType.ASSIGNMENT
    )

    approval = approvalCore.respondToApproval(session, driver, approval.id, False)

    assert approval.status == ApprovalStatus.REJECTED
    session.expire_all()
    order = session.get(Order, order.id)
    assert order.status == OrderStatus.OPEN
    assert order.assigned_driver_id is None


def test_price_adjustment(session, admin, driver, assignedOrder):
    approval = approvalCore.createApproval(
        session,
        admin,
        assignedOrder.id,
        driver.id,
        ApprovalType.PRICE_ADJUSTMENT,
        proposedPrice=Decimal("310.00"),
    )

    approvalCore.respondToApproval(session, driver, approval.id, True)

    session.expire_all()
    assert session.get(Order, assignedOrder.id).price == Decimal("310.00")


def test_price_adjustment_needs_a_positive_price(session, admin, driver, assignedOrder):
    with pytest.raises(exceptions.MissingParameter):
        approvalCore.createApproval(
            session, admin, assignedOrder.id, driver.id, ApprovalType.PRICE_ADJUSTMENT
        )
    with pytest.raises(exceptions.InvalidValue):
        approvalCore.createApproval(
            session,
            admin,
            assignedOrder.id,
            driver.id,
            ApprovalType.PRICE_ADJUSTMENT,
            proposedPrice=Decimal("0"),
        )


def test_purchase_confirmation(session, admin, driver, auctionOrder, assignedOrder):
    approval = approvalCore.createApproval(
        session, admin, auctionOrder.id, driver.id, ApprovalType.AUCTION_PURCHASE
    )
    approval = approvalCore.respondToApproval(session, driver, approval.id, True)

    assert approval.status == ApprovalStatus.ACCEPTED
    session.expire_all()
    assert session.get(Order, auctionOrder.id).status == OrderStatus.IN_PROGRESS

    with pytest.raises(exceptions.InvalidValue):
        approvalCore.createApproval(
            session, admin, assignedOrder.id, driver.id, ApprovalType.AUCTION_PURCHASE
        )


def test_assignment_proposals_need_an_open_manual_order(
    session, admin, driver, assignedOrder, auctionOrder
):
    with pytest.raises(exceptions.InvalidStateTransition):
        approvalCore.createApproval(
            session, admin, assignedOrder.id, driver.id, ApprovalType.ASSIGNMENT
        )
    with pytest.raises(exceptions.AuctionOrderLocked):
        approvalCore.createApproval(
            session, admin, auctionOrder.id, driver.id, ApprovalType.ASSIGNMENT
        )


def test_proposals_address_the_orders_driver(session, admin, driver2, assignedOrder):
    with pytest.raises(exceptions.InvalidAssociation):
        approvalCore.createApproval(
            session,
            admin,
            assignedOrder.id,
            driver2.id,
            ApprovalType.PRICE_ADJUSTMENT,
            proposedPrice=Decimal("300.00"),
        )


def test_one_pending_proposal_per_kind(session, admin, driver, makeOrder):
    order = makeOrder()
    approvalCore.createApproval(
        session, admin, order.id, driver.id, ApprovalType.ASSIGNMENT
    )

    with pytest.raises(exceptions.DuplicateApproval):
        approvalCore.createApproval(
            session, admin, order.id, driver.id, ApprovalType.ASSIGNMENT
        )


def test_only_the_addressed_driver_responds(session, admin, driver, driver2, makeOrder):
    order = makeOrder()
    approval = approvalCore.createApproval(
        session, admin, order.id, driver.id, ApprovalType.ASSIGNMENT
    )

    with pytest.raises(exceptions.NoPermission):
        approvalCore.respondToApproval(session, driver2, approval.id, True)
    with pytest.raises(exceptions.NoPermission):
        approvalCore.respondToApproval(session, admin, approval.id, True)
    with pytest.raises(exceptions.InvalidIdentifier):
        approvalCore.respondToApproval(session, driver, 404, True)


def test_answer_locks_the_order_before_the_proposal(
    session, admin, driver, makeOrder
):
    order = makeOrder()
    approval = approvalCore.createApproval(
        session, admin, order.id, driver.id, ApprovalType.ASSIGNMENT
    )
    locked = []

    @event.listens_for(session, "do_orm_execute")
    def recordLocks(state):
        if state.is_select and state.statement._for_update_arg is not None:
            locked.append(state.bind_mapper.class_)

    approvalCore.respondToApproval(session, driver, approval.id, True)

    assert locked == [Order, OrderApproval]


def test_answer_to_a_deleted_order(session, admin, driver, makeOrder):
    order = makeOrder()
    approval = approvalCore.createApproval(
        session, admin, order.id, driver.id, ApprovalType.ASSIGNMENT
    )
    approvalId = approval.id
    orderCore.deleteOrder(session, admin, order.id)

    with pytest.raises(exceptions.InvalidIdentifier):
        approvalCore.respondToApproval(session, driver, approvalId, True)


def test_answered_proposals_are_final(session, admin, driver, makeOrder):
    order = makeOrder()
    approval = approvalCore.createApproval(
        session, admin, order.id, driver.id, ApprovalType.ASSIGNMENT
    )
    approvalCore.respondToApproval(session, driver, approval.id, False)

    with pytest.raises(exceptions.InvalidStateTransition):
        approvalCore.respondToApproval(session, driver, approval.id, True)


def test_late_answer_expires_the_proposal(session, admin, driver, makeOrder):
    order = makeOrder()
    approval = approvalCore.createApproval(
        session, admin, order.id, driver.id, ApprovalType.ASSIGNMENT, validity=-60
    )

    with pytest.raises(exceptions.ApprovalExpired):
        approvalCore.respondToApproval(session, driver, approval.id, True)

    session.expire_all()
    assert session.get(OrderApproval, approval.id).status == ApprovalStatus.EXPIRED
    assert session.get(Order, order.id).status == OrderStatus.OPEN


def test_expire_sweep(session, admin, driver, makeOrder):
    stale = approvalCore.createApproval(
        session, admin, makeOrder().id, driver.id, ApprovalType.ASSIGNMENT, validity=-60
    )
    fresh = approvalCore.createApproval(
        session, admin, makeOrder().id, driver.id, ApprovalType.ASSIGNMENT
    )

    assert cleaner.expireStaleApprovals(session) == 1
    assert approvalCore.expireApprovals(session) == 0

    session.expire_all()
    assert session.get(OrderApproval, stale.id).status == ApprovalStatus.EXPIRED
    assert session.get(OrderApproval, fresh.id).status == ApprovalStatus.PENDING


def test_listing_is_scoped(session, admin, driver, driver2, makeOrder, disponent):
    order = makeOrder()
    approvalCore.createApproval(
        session, admin, order.id, driver.id, ApprovalType.ASSIGNMENT
    )

    assert len(approvalCore.getApprovals(session, admin)) == 1
    assert len(approvalCore.getApprovals(session, driver)) == 1
    assert approvalCore.getApprovals(session, driver2) == []
    assert (
        approvalCore.getApprovals(session, admin, status=ApprovalStatus.ACCEPTED) == []
    )
    assert len(approvalCore.getApprovals(session, admin, orderId=order.id)) == 1
    with pytest.raises(exceptions.NoPermission):
        approvalCore.getApprovals(session, disponent)


def test_cleaner_removes_expired_tokens(session, driver):
    now = datetime.now(timezone.utc)
    session.add_all(
        [
            UserToken(user_id=driver.id, expires_in=60, expires_at=now - timedelta(hours=1)),
            UserToken(user_id=driver.id, expires_in=60, expires_at=now + timedelta(hours=1)),
        ]
    )
    session.commit()

    assert cleaner.removeExpiredTokens(session) == 1
    assert session.query(UserToken).count() == 1
