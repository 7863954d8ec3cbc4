from datetime import datetime
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from sqlalchemy.orm.session import Session

from app.api.bearer import bearer_user
from app.api.order import OrderSchema, orderData
from app.src.db import Billing, User
from app.src import exceptions, getters
from app.src.core import billing as core
from app.src.enums import BillingStatus, BillingType, OrderIn
from app.src.loggers import logEvent
from app.src.functions import enumStr, fuseExceptionResponses, toDict
from app.src.schemas import Money, MoneyOut
from app.src.urls import (
    URL_BILLING,
    URL_BILLING_COMPLETION,
    URL_BILLING_PAID,
    URL_BILLING_PENDING,
    URL_BILLING_STATUS,
)

route_billing = APIRouter()


## Output Schema
class BillingSchema(BaseModel):
    id: int
    user_id: int
    order_id: Optional[int]
    auction_id: Optional[int]
    amount: MoneyOut
    original_amount: Optional[MoneyOut]
    type: int
    status: int
    description: str
    admin_notes: Optional[str]
    approved_by_id: Optional[int]
    approved_at: Optional[datetime]
    created_by_id: int
    updated_on: Optional[datetime]
    created_on: datetime


def billingData(billing: Billing) -> dict:
    return jsonable_encoder(BillingSchema(**toDict(billing)))


## Input Forms
class CompletionForm(BaseModel):
    order_id: int
    driver_id: int
    amount: Money


class StatusForm(BaseModel):
    id: int
    status: BillingStatus = Field(
        description="Either APPROVED or REJECTED. " + enumStr(BillingStatus)
    )
    admin_notes: str | None = Field(default=None, max_length=2048)
    new_amount: Money | None = None


class PaidForm(BaseModel):
    id: int


## Query Params
class OrderBy(IntEnum):
    id = 1
    amount = 2
    updated_on = 3
    created_on = 4


class QueryParams(BaseModel):
    # Filters
    user_id: int | None = Field(Query(default=None))
    order_id: int | None = Field(Query(default=None))
    auction_id: int | None = Field(Query(default=None))
    type: BillingType | None = Field(
        Query(default=None, description=enumStr(BillingType))
    )
    # id based
    id: int | None = Field(Query(default=None))
    id_ge: int | None = Field(Query(default=None))
    id_le: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # status based
    status: BillingStatus | None = Field(
        Query(default=None, description=enumStr(BillingStatus))
    )
    status_list: List[BillingStatus] | None = Field(
        Query(default=None, description=enumStr(BillingStatus))
    )
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
def searchBilling(session: Session, user: User, qParam: QueryParams) -> List[Billing]:
    query = core.getBillings(session, user)

    # Filters
    if qParam.user_id is not None:
        query = query.filter(Billing.user_id == qParam.user_id)
    if qParam.order_id is not None:
        query = query.filter(Billing.order_id == qParam.order_id)
    if qParam.auction_id is not None:
        query = query.filter(Billing.auction_id == qParam.auction_id)
    if qParam.type is not None:
        query = query.filter(Billing.type == qParam.type)
    # id based filters
    if qParam.id is not None:
        query = query.filter(Billing.id == qParam.id)
    if qParam.id_ge is not None:
        query = query.filter(Billing.id >= qParam.id_ge)
    if qParam.id_le is not None:
        query = query.filter(Billing.id <= qParam.id_le)
    if qParam.id_list is not None:
        query = query.filter(Billing.id.in_(qParam.id_list))
    # status based filters
    if qParam.status is not None:
        query = query.filter(Billing.status == qParam.status)
    if qParam.status_list is not None:
        query = query.filter(Billing.status.in_(qParam.status_list))
    # created_on based filters
    if qParam.created_on_ge is not None:
        query = query.filter(Billing.created_on >= qParam.created_on_ge)
    if qParam.created_on_le is not None:
        query = query.filter(Billing.created_on <= qParam.created_on_le)

    # Ordering
    orderingAttribute = getattr(Billing, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints
@route_billing.get(
    URL_BILLING,
    tags=["Billing"],
    response_model=List[BillingSchema],
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.NoPermission()]
    ),
    description="""
    Fetch billing entries with filtering, ordering and pagination.
    Administrators see every entry, drivers only the entries billed to them.
    Disponents have no access to billing.
    """,
)
async def fetch_billing(
    qParam: QueryParams = Depends(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        return [
            billingData(billing) for billing in searchBilling(session, user, qParam)
        ]
    except Exception as e:
        exceptions.handle(e)


@route_billing.get(
    URL_BILLING_PENDING,
    tags=["Billing"],
    response_model=List[BillingSchema],
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.NoPermission()]
    ),
    description="""
    Billing entries waiting for an administrator decision, oldest first.
    Only administrators can review billing.
    """,
)
async def fetch_pending_billing(
    bearer=Depends(bearer_user), session: Session = Depends(getters.dbSession)
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        return [
            billingData(billing)
            for billing in core.getPendingBillingApprovals(session, user)
        ]
    except Exception as e:
        exceptions.handle(e)


@route_billing.get(
    URL_BILLING_COMPLETION,
    tags=["Billing"],
    response_model=List[OrderSchema],
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.NoPermission()]
    ),
    description="""
    Completed orders that have no completion payment yet, oldest first.
    Only administrators can book completion payments.
    """,
)
async def fetch_completion_candidates(
    bearer=Depends(bearer_user), session: Session = Depends(getters.dbSession)
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        return [
            orderData(order)
            for order in core.getCompletedOrdersForBilling(session, user)
        ]
    except Exception as e:
        exceptions.handle(e)


@route_billing.post(
    URL_BILLING_COMPLETION,
    tags=["Billing"],
    response_model=BillingSchema,
    status_code=status.HTTP_201_CREATED,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
            exceptions.InvalidStateTransition(Billing.status),
            exceptions.InvalidAssociation(Billing.user_id, Billing.order_id),
            exceptions.DuplicateBilling(),
        ]
    ),
    description="""
    Book the completion payment of a completed order for its driver.
    Only administrators can create billing entries.
    The order must be COMPLETED and assigned to the given driver.
    Each order gets at most one completion payment.
    The entry is created in PENDING status.
    """,
)
async def create_completion_billing(
    fParam: CompletionForm = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        billing = core.createCompletionBilling(
            session, user, fParam.order_id, fParam.driver_id, fParam.amount
        )

        data = billingData(billing)
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)


@route_billing.patch(
    URL_BILLING_STATUS,
    tags=["Billing"],
    response_model=BillingSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidValue(Billing.status),
            exceptions.InvalidIdentifier(),
            exceptions.InvalidStateTransition(Billing.status),
        ]
    ),
    description="""
    Approve or reject a billing entry.
    Only administrators can decide billing entries.
    The amount can be adjusted with the decision; the amount the entry was created with is kept in original_amount.
    Repeating the current decision without changes returns the entry unchanged.
    Decided entries cannot be decided again, paid entries never change.

    Allowed status transitions:
        PENDING → APPROVED
        PENDING → REJECTED
    """,
)
async def update_billing_status(
    fParam: StatusForm = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        billing = core.updateBillingStatus(
            session,
            user,
            fParam.id,
            fParam.status,
            fParam.admin_notes,
            fParam.new_amount,
        )

        data = billingData(billing)
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)


@route_billing.patch(
    URL_BILLING_PAID,
    tags=["Billing"],
    response_model=BillingSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
            exceptions.InvalidStateTransition(Billing.status),
        ]
    ),
    description="""
    Mark an approved billing entry as paid.
    Only administrators can settle billing entries.
    """,
)
async def mark_billing_paid(
    fParam: PaidForm = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        billing = core.markBillingPaid(session, user, fParam.id)

        data = billingData(billing)
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)
