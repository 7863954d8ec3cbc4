"""
Role-based access control for the Vehicle Transport Portal.

Every transaction-core operation names an `Action` and calls `authorize()`
before it touches the store. Row scoping of orders (disponents see the orders
they created, drivers the orders assigned to them) is applied by
`orderAccess()` for single rows and `scopeOrders()` for list queries.
"""

from enum import IntEnum
from sqlalchemy.orm import Query

from app.src.db import Order, User
from app.src.enums import UserRole
from app.src import exceptions


class Action(IntEnum):
    # Orders
    CREATE_ORDER = 1
    UPDATE_ORDER = 2
    DELETE_ORDER = 3
    VIEW_ORDER = 4
    ASSIGN_ORDER = 5
    ACCEPT_ORDER = 6
    REJECT_ORDER = 7
    UPDATE_ORDER_STATUS = 8
    # Auctions
    CREATE_AUCTION = 9
    VIEW_AUCTION = 10
    UPDATE_AUCTION = 11
    DELETE_AUCTION = 12
    PURCHASE_AUCTION = 13
    # Billing
    VIEW_BILLING = 14
    CREATE_BILLING = 15
    DECIDE_BILLING = 16
    # Handovers
    SUBMIT_HANDOVER = 17
    VIEW_HANDOVER = 18
    # Approvals
    CREATE_APPROVAL = 19
    RESPOND_APPROVAL = 20
    VIEW_APPROVAL = 21


ADMIN = {UserRole.ADMIN}
DRIVER = {UserRole.DRIVER}
ORDER_CREATORS = {UserRole.ADMIN, UserRole.DISPONENT}
EVERYONE = {UserRole.ADMIN, UserRole.DISPONENT, UserRole.DRIVER}

PERMISSIONS: dict[Action, set[UserRole]] = {
    Action.CREATE_ORDER: ORDER_CREATORS,
    Action.UPDATE_ORDER: ADMIN,
    Action.DELETE_ORDER: ADMIN,
    Action.VIEW_ORDER: EVERYONE,
    Action.ASSIGN_ORDER: ADMIN,
    Action.ACCEPT_ORDER: DRIVER,
    Action.REJECT_ORDER: DRIVER,
    Action.UPDATE_ORDER_STATUS: EVERYONE,
    Action.CREATE_AUCTION: ADMIN,
    Action.VIEW_AUCTION: EVERYONE,
    Action.UPDATE_AUCTION: ADMIN,
    Action.DELETE_AUCTION: ADMIN,
    Action.PURCHASE_AUCTION: DRIVER,
    Action.VIEW_BILLING: {UserRole.ADMIN, UserRole.DRIVER},
    Action.CREATE_BILLING: ADMIN,
    Action.DECIDE_BILLING: ADMIN,
    Action.SUBMIT_HANDOVER: DRIVER,
    Action.VIEW_HANDOVER: EVERYONE,
    Action.CREATE_APPROVAL: ADMIN,
    Action.RESPOND_APPROVAL: DRIVER,
    Action.VIEW_APPROVAL: {UserRole.ADMIN, UserRole.DRIVER},
}


def isAllowed(user: User, action: Action) -> bool:
    return user is not None and user.role in PERMISSIONS.get(action, set())


def authorize(user: User, action: Action) -> bool:
    """
    Validate that the user's role may perform the action.

    Raises:
        exceptions.NoPermission: If the role is not on the action's allow-list.
    """
    if isAllowed(user, action):
        return True
    raise exceptions.NoPermission()


def orderAccess(user: User, order: Order) -> bool:
    """
    Validate that the user may see or act on a specific order.

    Raises:
        exceptions.NoPermission: If the order is outside the user's scope.
    """
    if user.role == UserRole.ADMIN:
        return True
    if user.role == UserRole.DISPONENT and order.created_by_id == user.id:
        return True
    if user.role == UserRole.DRIVER and order.assigned_driver_id == user.id:
        return True
    raise exceptions.NoPermission()


def scopeOrders(query: Query, user: User) -> Query:
    """Restrict an order query to the rows the user may see."""
    if user.role == UserRole.DISPONENT:
        return query.filter(Order.created_by_id == user.id)
    if user.role == UserRole.DRIVER:
        return query.filter(Order.assigned_driver_id == user.id)
    return query
