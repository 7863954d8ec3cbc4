"""
Time-bounded proposals addressed to a driver.

An administrator proposes an assignment, a price adjustment or the
confirmation of an auction purchase; the addressed driver accepts or rejects
it before `expires_at`. Accepting applies the proposal to the order in the
same transaction. Stale proposals expire lazily when answered, and in bulk
through `expireApprovals`.
"""

from datetime import datetime, timedelta, timezone
from typing import List
from sqlalchemy import update
from sqlalchemy.orm.session import Session

from app.src.constants import APPROVAL_VALIDITY
from app.src.db import Order, OrderApproval, User
from app.src.enums import ApprovalStatus, ApprovalType, OrderStatus, UserRole
from app.src.functions import isPast, toMoney
from app.src.policy import Action, authorize
from app.src.transitions import APPROVAL_STATUS_TRANSITION, ORDER_STATUS_TRANSITION
from app.src.core.order import lockOrder
from app.src import exceptions, validators

TERMINAL_ORDER_STATES = [OrderStatus.COMPLETED, OrderStatus.CANCELLED]


def createApproval(
    session: Session,
    actor: User,
    orderId: int,
    driverId: int,
    approvalType: ApprovalType,
    proposedPrice=None,
    validity: int = APPROVAL_VALIDITY,
) -> OrderApproval:
    """
    Propose a change of an order to a driver.

    Raises:
        exceptions.InvalidIdentifier: If the order does not exist.
        exceptions.UnknownValue, exceptions.InvalidValue, exceptions.InactiveResource:
            If the addressed user is not an active driver.
        exceptions.AuctionOrderLocked: If an assignment targets an auction order.
        exceptions.InvalidValue: If a purchase confirmation targets a manual order,
            or a price adjustment is not positive.
        exceptions.InvalidAssociation: If the driver does not hold the order.
        exceptions.MissingParameter: If a price adjustment has no price.
        exceptions.InvalidStateTransition: If the order cannot take the change.
        exceptions.DuplicateApproval: If the same kind of proposal is pending.
    """
    authorize(actor, Action.CREATE_APPROVAL)
    validators.activeAccount(actor)
    try:
        order = lockOrder(session, orderId)
        driver = session.query(User).filter(User.id == driverId).first()
        validators.activeDriver(driver, OrderApproval.driver_id)

        if approvalType == ApprovalType.ASSIGNMENT:
            if order.from_auction:
                raise exceptions.AuctionOrderLocked()
            if order.status != OrderStatus.OPEN:
                raise exceptions.InvalidStateTransition(Order.status)
        else:
            if order.assigned_driver_id != driver.id:
                raise exceptions.InvalidAssociation(
                    OrderApproval.driver_id, OrderApproval.order_id
                )
            if order.status in TERMINAL_ORDER_STATES:
                raise exceptions.InvalidStateTransition(Order.status)
        if approvalType == ApprovalType.AUCTION_PURCHASE and not order.from_auction:
            raise exceptions.InvalidValue(OrderApproval.approval_type)
        if approvalType == ApprovalType.PRICE_ADJUSTMENT:
            if proposedPrice is None:
                raise exceptions.MissingParameter(OrderApproval.proposed_price)
            proposedPrice = toMoney(proposedPrice)
            if proposedPrice <= 0:
                raise exceptions.InvalidValue(OrderApproval.proposed_price)
        else:
            proposedPrice = None

        pending = (
            session.query(OrderApproval.id)
            .filter(
                OrderApproval.order_id == order.id,
                OrderApproval.approval_type == approvalType,
                OrderApproval.status == ApprovalStatus.PENDING,
            )
            .first()
        )
        if pending is not None:
            raise exceptions.DuplicateApproval()

        approval = OrderApproval(
            order_id=order.id,
            driver_id=driver.id,
            approval_type=approvalType,
            status=ApprovalStatus.PENDING,
            proposed_price=proposedPrice,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=validity),
            created_by_id=actor.id,
        )
        session.add(approval)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(approval)
    return approval


def _applyApproval(approval: OrderApproval, order: Order, driver: User) -> None:
    if approval.approval_type == ApprovalType.ASSIGNMENT:
        # open -> assigned -> in_progress, the acceptance is implied
        validators.stateTransition(
            ORDER_STATUS_TRANSITION, order.status, OrderStatus.ASSIGNED, Order.status
        )
        order.assigned_driver_id = driver.id
        order.status = OrderStatus.IN_PROGRESS
    elif approval.approval_type == ApprovalType.PRICE_ADJUSTMENT:
        if order.status in TERMINAL_ORDER_STATES:
            raise exceptions.InvalidStateTransition(Order.status)
        order.price = approval.proposed_price


def respondToApproval(
    session: Session, actor: User, approvalId: int, accept: bool
) -> OrderApproval:
    """
    Accept or reject a pending proposal.

    A proposal answered after its expiry is marked expired, that change is
    committed, and `ApprovalExpired` is raised.

    Raises:
        exceptions.InvalidIdentifier: If the proposal does not exist.
        exceptions.NoPermission: If the proposal is addressed to someone else.
        exceptions.ApprovalExpired: If the proposal expired.
        exceptions.InvalidStateTransition: If the proposal was already answered,
            or the order can no longer take the change.
    """
    authorize(actor, Action.RESPOND_APPROVAL)
    validators.activeAccount(actor)
    expired = False
    try:
        orderId = (
            session.query(OrderApproval.order_id)
            .filter(OrderApproval.id == approvalId)
            .scalar()
        )
        if orderId is None:
            raise exceptions.InvalidIdentifier()
        # Order row before the proposal row, as the deleteOrder cascade takes them
        order = lockOrder(session, orderId)
        approval = (
            session.query(OrderApproval)
            .filter(OrderApproval.id == approvalId)
            .with_for_update()
            .first()
        )
        if approval is None:
            raise exceptions.InvalidIdentifier()
        if approval.driver_id != actor.id:
            raise exceptions.NoPermission()

        now = datetime.now(timezone.utc)
        if approval.status == ApprovalStatus.PENDING and isPast(approval.expires_at):
            approval.status = ApprovalStatus.EXPIRED
            approval.responded_on = now
            expired = True
        else:
            status = ApprovalStatus.ACCEPTED if accept else ApprovalStatus.REJECTED
            validators.stateTransition(
                APPROVAL_STATUS_TRANSITION,
                approval.status,
                status,
                OrderApproval.status,
            )
            approval.status = status
            approval.responded_on = now
            if accept:
                _applyApproval(approval, order, actor)
        session.commit()
    except Exception:
        session.rollback()
        raise
    if expired:
        raise exceptions.ApprovalExpired()
    session.refresh(approval)
    return approval


def expireApprovals(session: Session) -> int:
    """Mark every pending proposal past its expiry as expired."""
    now = datetime.now(timezone.utc)
    try:
        result = session.execute(
            update(OrderApproval)
            .where(
                OrderApproval.status == ApprovalStatus.PENDING,
                OrderApproval.expires_at <= now,
            )
            .values(status=ApprovalStatus.EXPIRED, responded_on=now)
            .execution_options(synchronize_session=False)
        )
        session.commit()
    except Exception:
        session.rollback()
        raise
    return result.rowcount


def getApprovals(
    session: Session,
    actor: User,
    orderId: int | None = None,
    status: ApprovalStatus | None = None,
) -> List[OrderApproval]:
    """Proposals visible to the actor. Drivers only see their own."""
    authorize(actor, Action.VIEW_APPROVAL)
    query = session.query(OrderApproval)
    if actor.role == UserRole.DRIVER:
        query = query.filter(OrderApproval.driver_id == actor.id)
    if orderId is not None:
        query = query.filter(OrderApproval.order_id == orderId)
    if status is not None:
        query = query.filter(OrderApproval.status == status)
    return query.order_by(OrderApproval.id.asc()).all()
