from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Body, Depends, Query, Response, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from sqlalchemy.orm.session import Session

from app.api.bearer import bearer_user
from app.src.db import Order, User
from app.src import exceptions, getters, policy
from app.src.core import order as core
from app.src.enums import OrderIn, OrderStatus
from app.src.loggers import logEvent
from app.src.functions import enumStr, fuseExceptionResponses, toDict
from app.src.schemas import MoneyOut, OrderChanges, OrderDetails
from app.src.urls import (
    URL_ORDER,
    URL_ORDER_ACCEPT,
    URL_ORDER_ASSIGN,
    URL_ORDER_REJECT,
    URL_ORDER_STATUS,
)

route_order = APIRouter()


## Output Schema
class OrderSchema(BaseModel):
    id: int
    pickup_location: str
    delivery_location: str
    vehicle_brand: str
    vehicle_model: str
    vehicle_year: Optional[int]
    pickup_date: datetime
    delivery_date: Optional[datetime]
    pickup_time_from: Optional[str]
    pickup_time_to: Optional[str]
    delivery_time_from: Optional[str]
    delivery_time_to: Optional[str]
    price: MoneyOut
    distance: Optional[int]
    notes: Optional[str]
    status: int
    assigned_driver_id: Optional[int]
    created_by_id: int
    from_auction: bool
    auction_id: Optional[int]
    updated_on: Optional[datetime]
    created_on: datetime


def orderData(order: Order) -> dict:
    return jsonable_encoder(OrderSchema(**toDict(order)))


## Input Forms
class UpdateForm(OrderChanges):
    id: int


class AssignForm(BaseModel):
    id: int
    driver_id: int


class IdentifierForm(BaseModel):
    id: int


class StatusForm(BaseModel):
    id: int
    status: OrderStatus = Field(description=enumStr(OrderStatus))


class DeleteForm(BaseModel):
    id: int = Field(Query())


## Query Params
class OrderBy(IntEnum):
    id = 1
    pickup_date = 2
    price = 3
    updated_on = 4
    created_on = 5


class QueryParams(BaseModel):
    # Filters
    pickup_location: str | None = Field(Query(default=None))
    delivery_location: str | None = Field(Query(default=None))
    vehicle_brand: str | None = Field(Query(default=None))
    assigned_driver_id: int | None = Field(Query(default=None))
    created_by_id: int | None = Field(Query(default=None))
    from_auction: bool | None = Field(Query(default=None))
    auction_id: int | None = Field(Query(default=None))
    # id based
    id: int | None = Field(Query(default=None))
    id_ge: int | None = Field(Query(default=None))
    id_le: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # status based
    status: OrderStatus | None = Field(
        Query(default=None, description=enumStr(OrderStatus))
    )
    status_list: List[OrderStatus] | None = Field(
        Query(default=None, description=enumStr(OrderStatus))
    )
    # pickup_date based
    pickup_date_ge: datetime | None = Field(Query(default=None))
    pickup_date_le: datetime | None = Field(Query(default=None))
    # created_on based
    created_on_ge: datetime | None = Field(Query(default=None))
    created_on_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


# Functions
def searchOrder(session: Session, user: User, qParam: QueryParams) -> List[Order]:
    policy.authorize(user, policy.Action.VIEW_ORDER)
    query = policy.scopeOrders(session.query(Order), user)

    # Filters
    if qParam.pickup_location is not None:
        query = query.filter(Order.pickup_location.ilike(f"%{qParam.pickup_location}%"))
    if qParam.delivery_location is not None:
        query = query.filter(
            Order.delivery_location.ilike(f"%{qParam.delivery_location}%")
        )
    if qParam.vehicle_brand is not None:
        query = query.filter(Order.vehicle_brand.ilike(f"%{qParam.vehicle_brand}%"))
    if qParam.assigned_driver_id is not None:
        query = query.filter(Order.assigned_driver_id == qParam.assigned_driver_id)
    if qParam.created_by_id is not None:
        query = query.filter(Order.created_by_id == qParam.created_by_id)
    if qParam.from_auction is not None:
        query = query.filter(Order.from_auction == qParam.from_auction)
    if qParam.auction_id is not None:
        query = query.filter(Order.auction_id == qParam.auction_id)
    # id based filters
    if qParam.id is not None:
        query = query.filter(Order.id == qParam.id)
    if qParam.id_ge is not None:
        query = query.filter(Order.id >= qParam.id_ge)
    if qParam.id_le is not None:
        query = query.filter(Order.id <= qParam.id_le)
    if qParam.id_list is not None:
        query = query.filter(Order.id.in_(qParam.id_list))
    # status based filters
    if qParam.status is not None:
        query = query.filter(Order.status == qParam.status)
    if qParam.status_list is not None:
        query = query.filter(Order.status.in_(qParam.status_list))
    # pickup_date based filters
    if qParam.pickup_date_ge is not None:
        query = query.filter(Order.pickup_date >= qParam.pickup_date_ge)
    if qParam.pickup_date_le is not None:
        query = query.filter(Order.pickup_date <= qParam.pickup_date_le)
    # created_on based filters
    if qParam.created_on_ge is not None:
        query = query.filter(Order.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Order.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Order, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints
@route_order.post(
    URL_ORDER,
    tags=["Order"],
    response_model=OrderSchema,
    status_code=status.HTTP_201_CREATED,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InactiveAccount(),
        ]
    ),
    description="""
    Post a new transport order.
    Administrators and disponents can create orders.
    The order is created in OPEN status, without a driver.
    Time windows are optional and use the HH:MM format.
    Log the order creation activity with the acting user.
    """,
)
async def create_order(
    fParam: OrderDetails = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        order = core.createOrder(session, user, fParam)

        data = orderData(order)
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)


@route_order.patch(
    URL_ORDER,
    tags=["Order"],
    response_model=OrderSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
        ]
    ),
    description="""
    Update the descriptive fields of an order by ID.
    Only administrators can edit orders.
    Status, driver and provenance are changed through their own endpoints.
    Log the order update activity with the acting user.
    """,
)
async def update_order(
    fParam: UpdateForm = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        order = core.updateOrder(session, user, fParam.id, fParam)

        data = orderData(order)
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)


@route_order.delete(
    URL_ORDER,
    tags=["Order"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.NoPermission()]
    ),
    description="""
    Delete an order by ID, in any status.
    Only administrators can delete orders.
    Handovers and approvals of the order are removed with it, billing entries are kept.
    If the order does not exist, the operation is silently ignored.
    """,
)
async def delete_order(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        if core.deleteOrder(session, user, fParam.id):
            logEvent(user, request_info, {"id": fParam.id})
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)


@route_order.get(
    URL_ORDER,
    tags=["Order"],
    response_model=List[OrderSchema],
    responses=fuseExceptionResponses([exceptions.InvalidToken()]),
    description="""
    Fetch orders with filtering, ordering and pagination.
    Administrators see every order.
    Disponents only see the orders they created.
    Drivers only see the orders assigned to them.
    """,
)
async def fetch_order(
    qParam: QueryParams = Depends(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        return [orderData(order) for order in searchOrder(session, user, qParam)]
    except Exception as e:
        exceptions.handle(e)


@route_order.patch(
    URL_ORDER_ASSIGN,
    tags=["Order"],
    response_model=OrderSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
            exceptions.UnknownValue(Order.assigned_driver_id),
            exceptions.InvalidValue(Order.assigned_driver_id),
            exceptions.InactiveResource(User),
            exceptions.AuctionOrderLocked(),
            exceptions.InvalidStateTransition(Order.status),
        ]
    ),
    description="""
    Assign an order to a driver.
    Only administrators can assign orders.
    The driver must exist, have the DRIVER role and be active.
    OPEN orders move to ASSIGNED; ASSIGNED orders can be handed to another driver.
    Orders spawned by an auction purchase can never be reassigned.
    """,
)
async def assign_order(
    fParam: AssignForm = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        order = core.assignOrderToDriver(session, user, fParam.id, fParam.driver_id)

        data = orderData(order)
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)


@route_order.patch(
    URL_ORDER_ACCEPT,
    tags=["Order"],
    response_model=OrderSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InactiveAccount(),
            exceptions.InvalidIdentifier(),
            exceptions.NotAssignedDriver(),
            exceptions.AuctionOrderLocked(),
            exceptions.InvalidStateTransition(Order.status),
        ]
    ),
    description="""
    The assigned driver accepts the order, which moves from ASSIGNED to IN_PROGRESS.
    Orders spawned by an auction purchase are already owned by their buyer and cannot be accepted.
    """,
)
async def accept_order(
    fParam: IdentifierForm = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        order = core.acceptOrder(session, user, fParam.id)

        data = orderData(order)
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)


@route_order.patch(
    URL_ORDER_REJECT,
    tags=["Order"],
    response_model=OrderSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InactiveAccount(),
            exceptions.InvalidIdentifier(),
            exceptions.NotAssignedDriver(),
            exceptions.AuctionOrderLocked(),
            exceptions.InvalidStateTransition(Order.status),
        ]
    ),
    description="""
    The assigned driver declines the order.
    The order returns to OPEN and its driver is cleared.
    Orders spawned by an auction purchase cannot be rejected.
    """,
)
async def reject_order(
    fParam: IdentifierForm = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        order = core.rejectOrder(session, user, fParam.id)

        data = orderData(order)
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)


@route_order.patch(
    URL_ORDER_STATUS,
    tags=["Order"],
    response_model=OrderSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
            exceptions.InvalidStateTransition(Order.status),
        ]
    ),
    description="""
    Move an order along its lifecycle.
    Administrators can update any order, disponents their own orders, drivers their assigned orders.
    OPEN and ASSIGNED are only reached through assignment and rejection.
    When a driver cancels an order spawned by an auction purchase, a cancellation fee of 10% of the price is billed to the driver.
    Cancelled and completed orders are final.

    Allowed status transitions:
        ASSIGNED → IN_PROGRESS
        IN_PROGRESS → COMPLETED
        OPEN, ASSIGNED, IN_PROGRESS → CANCELLED
    """,
)
async def update_order_status(
    fParam: StatusForm = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        order = core.updateOrderStatus(session, user, fParam.id, fParam.status)

        data = orderData(order)
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)
