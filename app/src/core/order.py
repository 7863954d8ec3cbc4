"""
Order lifecycle operations.

Each operation takes the caller's session and the acting user, checks the
access-control policy before touching the store, and commits once. Status
writes are validated against `ORDER_STATUS_TRANSITION`; rows being changed
are read with `SELECT ... FOR UPDATE` so concurrent writers serialize.
"""

from sqlalchemy.orm.session import Session

from app.src.db import Order, User
from app.src.enums import OrderStatus, UserRole
from app.src.functions import updateIfChanged
from app.src.policy import Action, authorize, orderAccess
from app.src.schemas import OrderChanges, OrderDetails
from app.src.transitions import ORDER_ASSIGNMENT_STATES, ORDER_STATUS_TRANSITION
from app.src.core import billing as ledger
from app.src import exceptions, validators

# Descriptive fields an administrator may edit after creation
EDITABLE_FIELDS = [
    Order.pickup_location.key,
    Order.delivery_location.key,
    Order.vehicle_brand.key,
    Order.vehicle_model.key,
    Order.vehicle_year.key,
    Order.pickup_date.key,
    Order.delivery_date.key,
    Order.pickup_time_from.key,
    Order.pickup_time_to.key,
    Order.delivery_time_from.key,
    Order.delivery_time_to.key,
    Order.price.key,
    Order.distance.key,
    Order.notes.key,
]


def lockOrder(session: Session, orderId: int) -> Order:
    order = session.query(Order).filter(Order.id == orderId).with_for_update().first()
    if order is None:
        raise exceptions.InvalidIdentifier()
    return order


def createOrder(session: Session, actor: User, details: OrderDetails) -> Order:
    authorize(actor, Action.CREATE_ORDER)
    validators.activeAccount(actor)
    try:
        order = Order(
            **details.model_dump(),
            status=OrderStatus.OPEN,
            from_auction=False,
            created_by_id=actor.id,
        )
        session.add(order)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(order)
    return order


def updateOrder(
    session: Session, actor: User, orderId: int, changes: OrderChanges
) -> Order:
    """Apply a partial update of the descriptive fields of an order."""
    authorize(actor, Action.UPDATE_ORDER)
    validators.activeAccount(actor)
    try:
        order = lockOrder(session, orderId)
        updateIfChanged(order, changes, EDITABLE_FIELDS)
        if session.is_modified(order):
            session.commit()
        else:
            session.rollback()
    except Exception:
        session.rollback()
        raise
    session.refresh(order)
    return order


def assignOrderToDriver(
    session: Session, actor: User, orderId: int, driverId: int
) -> Order:
    """
    Hand a manual order to a driver, or move it to another driver while it
    is still waiting for acceptance.

    Raises:
        exceptions.InvalidIdentifier: If the order does not exist.
        exceptions.AuctionOrderLocked: If the order was spawned by a purchase.
        exceptions.UnknownValue: If the driver does not exist.
        exceptions.InvalidValue: If the user is not a driver.
        exceptions.InactiveResource: If the driver is not active.
        exceptions.InvalidStateTransition: If the order is past assignment.
    """
    authorize(actor, Action.ASSIGN_ORDER)
    validators.activeAccount(actor)
    try:
        order = lockOrder(session, orderId)
        if order.from_auction:
            raise exceptions.AuctionOrderLocked()
        driver = session.query(User).filter(User.id == driverId).first()
        validators.activeDriver(driver, Order.assigned_driver_id)
        if order.status != OrderStatus.ASSIGNED:
            validators.stateTransition(
                ORDER_STATUS_TRANSITION,
                order.status,
                OrderStatus.ASSIGNED,
                Order.status,
            )
        order.assigned_driver_id = driver.id
        order.status = OrderStatus.ASSIGNED
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(order)
    return order


def _assignedOrder(session: Session, actor: User, orderId: int) -> Order:
    order = lockOrder(session, orderId)
    if order.assigned_driver_id != actor.id:
        raise exceptions.NotAssignedDriver()
    if order.from_auction:
        raise exceptions.AuctionOrderLocked()
    if order.status != OrderStatus.ASSIGNED:
        raise exceptions.InvalidStateTransition(Order.status)
    return order


def acceptOrder(session: Session, actor: User, orderId: int) -> Order:
    """
    The assigned driver takes on a manual assignment, `assigned -> in_progress`.

    Raises:
        exceptions.InvalidIdentifier: If the order does not exist.
        exceptions.NotAssignedDriver: If the order is assigned to someone else.
        exceptions.AuctionOrderLocked: If the order was spawned by a purchase.
        exceptions.InvalidStateTransition: If the order is not waiting for acceptance.
    """
    authorize(actor, Action.ACCEPT_ORDER)
    validators.activeAccount(actor)
    try:
        order = _assignedOrder(session, actor, orderId)
        order.status = OrderStatus.IN_PROGRESS
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(order)
    return order


def rejectOrder(session: Session, actor: User, orderId: int) -> Order:
    """
    The assigned driver declines a manual assignment. The order goes back to
    `open` without a driver. Fails the same way as `acceptOrder`.
    """
    authorize(actor, Action.REJECT_ORDER)
    validators.activeAccount(actor)
    try:
        order = _assignedOrder(session, actor, orderId)
        order.status = OrderStatus.OPEN
        order.assigned_driver_id = None
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(order)
    return order


def updateOrderStatus(
    session: Session, actor: User, orderId: int, status: OrderStatus
) -> Order:
    """
    Move an order along its lifecycle.

    `open` and `assigned` are only reached through assignment and rejection.
    When a driver cancels an order spawned by an auction purchase, the
    cancellation fee is booked in the same transaction as the status write.
    A cancelled order is terminal, so the fee can only be charged once.

    Raises:
        exceptions.InvalidIdentifier: If the order does not exist.
        exceptions.NoPermission: If the order is outside the actor's scope.
        exceptions.InvalidStateTransition: If the transition is not allowed.
    """
    authorize(actor, Action.UPDATE_ORDER_STATUS)
    validators.activeAccount(actor)
    if status in ORDER_ASSIGNMENT_STATES:
        raise exceptions.InvalidStateTransition(Order.status)
    try:
        order = lockOrder(session, orderId)
        orderAccess(actor, order)
        validators.stateTransition(
            ORDER_STATUS_TRANSITION, order.status, status, Order.status
        )
        order.status = status
        if (
            status == OrderStatus.CANCELLED
            and order.from_auction
            and actor.role == UserRole.DRIVER
        ):
            ledger.recordCancellationFee(session, order, actor)
        session.commit()
    except Exception:
        session.rollback()
        raise
    session.refresh(order)
    return order


def deleteOrder(session: Session, actor: User, orderId: int) -> bool:
    """
    Hard delete an order in any status.
    Handovers and approvals go with it; billing lines keep their order id.
    """
    authorize(actor, Action.DELETE_ORDER)
    validators.activeAccount(actor)
    try:
        deleted = (
            session.query(Order)
            .filter(Order.id == orderId)
            .delete(synchronize_session=False)
        )
        session.commit()
    except Exception:
        session.rollback()
        raise
    return deleted == 1
