"""
Billing ledger operations.

`recordOrderPayment` and `recordCancellationFee` are only called from inside
the purchase and cancellation transactions; they flush but never commit, so a
ledger line exists exactly when its triggering transition committed.
The remaining functions are the administrator workflow around completion
payments and approval.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List
from sqlalchemy import exists
from sqlalchemy.orm import Query
from sqlalchemy.orm.session import Session

from app.src.db import Auction, Billing, Order, User
from app.src.constants import CANCELLATION_FEE_RATE
from app.src.enums import BillingStatus, BillingType, OrderStatus, UserRole
from app.src.functions import percentageOf, toMoney
from app.src.policy import Action, authorize
from app.src.transitions import BILLING_STATUS_TRANSITION
from app.src import exceptions, validators


# ---------------------------------------------------------------------------
# Ledger writers (called inside an open transaction)
# ---------------------------------------------------------------------------
def recordOrderPayment(
    session: Session, auction: Auction, order: Order, buyer: User
) -> Billing:
    billing = Billing(
        user_id=buyer.id,
        order_id=order.id,
        auction_id=auction.id,
        amount=auction.instant_price,
        type=BillingType.ORDER_PAYMENT,
        status=BillingStatus.PENDING,
        description=(
            f"Auction purchase: {auction.vehicle_brand} {auction.vehicle_model}, "
            f"{auction.pickup_location} to {auction.delivery_location}"
        ),
        created_by_id=auction.created_by_id,
    )
    session.add(billing)
    session.flush()
    return billing


def cancellationFee(price) -> Decimal:
    return percentageOf(price, CANCELLATION_FEE_RATE)


def recordCancellationFee(session: Session, order: Order, driver: User) -> Billing:
    """
    Charge the cancelling driver a share of the order price.
    The fee is rounded half up to two fractional digits.
    """
    rate = int(CANCELLATION_FEE_RATE * 100)
    billing = Billing(
        user_id=driver.id,
        order_id=order.id,
        auction_id=order.auction_id,
        amount=cancellationFee(order.price),
        type=BillingType.CANCELLATION_FEE,
        status=BillingStatus.PENDING,
        description=(
            f"Cancellation fee for {order.vehicle_brand} {order.vehicle_model}: "
            f"{rate}% of the original price {toMoney(order.price)}"
        ),
        created_by_id=order.created_by_id,
    )
    session.add(billing)
    session.flush()
    return billing


# ---------------------------------------------------------------------------
# Administrator workflow
# ---------------------------------------------------------------------------
def _hasCompletionPayment(orderId):
    return exists().where(
        Billing.order_id == orderId,
        Billing.type == BillingType.COMPLETION_PAYMENT,
    )


def getCompletedOrdersForBilling(session: Session, actor: User) -> List[Order]:
    """Completed orders that do not have a completion payment yet, oldest first."""
    authorize(actor, Action.CREATE_BILLING)
    return (
        session.query(Order)
        .filter(Order.status == OrderStatus.COMPLETED)
        .filter(~_hasCompletionPayment(Order.id))
        .order_by(Order.id.asc())
        .all()
    )


def getBillings(session: Session, actor: User) -> Query:
    """Billing entries visible to the actor; drivers only see their own lines."""
    authorize(actor, Action.VIEW_BILLING)
    query = session.query(Billing)
    if actor.role == UserRole.DRIVER:
        query = query.filter(Billing.user_id == actor.id)
    return query


def getPendingBillingApprovals(session: Session, actor: User) -> List[Billing]:
    authorize(actor, Action.DECIDE_BILLING)
    return (
        session.query(Billing)
        .filter(Billing.status == BillingStatus.PENDING)
        .order_by(Billing.id.asc())
        .all()
    )


def createCompletionBilling(
    session: Session, actor: User, orderId: int, driverId: int, amount
) -> Billing:
    """
    Book the completion payment of a finished order for its driver.

    The order row is locked while the duplicate check runs, so two
    administrators booking the same order cannot both succeed.

    Raises:
        exceptions.InvalidIdentifier: If the order does not exist.
        exceptions.InvalidStateTransition: If the order is not completed.
        exceptions.InvalidAssociation: If the driver is not the order's driver.
        exceptions.DuplicateBilling: If a completion payment already exists.
    """
    authorize(actor, Action.CREATE_BILLING)
    validators.activeAccount(actor)
    amount = toMoney(amount)
    if amount <= 0:
        raise exceptions.InvalidValue(Billing.amount)
    try:
        order = (
            session.query(Order).filter(Order.id == orderId).with_for_update().first()
        )
        if order is None:
            raise exceptions.InvalidIdentifier()
        if order.status != OrderStatus.COMPLETED:
            raise exceptions.InvalidStateTransition(Order.status)
        if order.assigned_driver_id != driverId:
            raise exceptions.InvalidAssociation(Billing.user_id, Billing.order_id)
        if session.query(_hasCompletionPayment(order.id)).scalar():
            raise exceptions.DuplicateBilling()

        billing = Billing(
            user_id=driverId,
            order_id=order.id,
            auction_id=order.auction_id,
            amount=amount,
            type=BillingType.COMPLETION_PAYMENT,
            status=BillingStatus.PENDING,
            description=(
                f"Completion payment for {order.vehicle_brand} {order.vehicle_model}, "
                f"{order.pickup_location} to {order.delivery_location}"
            ),
            created_by_id=actor.id,
        )
        session.add(billing)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(billing)
    return billing


def updateBillingStatus(
    session: Session,
    actor: User,
    billingId: int,
    status: BillingStatus,
    adminNotes: str | None = None,
    newAmount=None,
) -> Billing:
    """
    Approve or reject a billing entry, optionally adjusting its amount.

    Repeating the decision an entry already carries, without a new amount or
    notes, returns the entry unchanged. Any other change must be a legal
    transition. The first amount adjustment moves the previous amount into
    `original_amount`; later adjustments keep it.

    Raises:
        exceptions.InvalidValue: If the status is neither APPROVED nor REJECTED.
        exceptions.InvalidIdentifier: If the entry does not exist.
        exceptions.InvalidStateTransition: If the entry is no longer pending.
    """
    authorize(actor, Action.DECIDE_BILLING)
    validators.activeAccount(actor)
    if status not in [BillingStatus.APPROVED, BillingStatus.REJECTED]:
        raise exceptions.InvalidValue(Billing.status)
    if newAmount is not None:
        newAmount = toMoney(newAmount)
        if newAmount <= 0:
            raise exceptions.InvalidValue(Billing.amount)
    try:
        billing = (
            session.query(Billing)
            .filter(Billing.id == billingId)
            .with_for_update()
            .first()
        )
        if billing is None:
            raise exceptions.InvalidIdentifier()
        if billing.status == status and newAmount is None and adminNotes is None:
            session.commit()
            return billing
        validators.stateTransition(
            BILLING_STATUS_TRANSITION, billing.status, status, Billing.status
        )

        if newAmount is not None and newAmount != billing.amount:
            if billing.original_amount is None:
                billing.original_amount = billing.amount
            billing.amount = newAmount
        if adminNotes is not None:
            billing.admin_notes = adminNotes
        billing.status = status
        billing.approved_by_id = actor.id
        billing.approved_at = datetime.now(timezone.utc)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(billing)
    return billing


def markBillingPaid(session: Session, actor: User, billingId: int) -> Billing:
    authorize(actor, Action.DECIDE_BILLING)
    validators.activeAccount(actor)
    try:
        billing = (
            session.query(Billing)
            .filter(Billing.id == billingId)
            .with_for_update()
            .first()
        )
        if billing is None:
            raise exceptions.InvalidIdentifier()
        validators.stateTransition(
            BILLING_STATUS_TRANSITION,
            billing.status,
            BillingStatus.PAID,
            Billing.status,
        )
        billing.status = BillingStatus.PAID
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(billing)
    return billing
