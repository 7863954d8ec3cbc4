from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from sqlalchemy.orm.session import Session

from app.api.bearer import bearer_user
from app.src.constants import APPROVAL_VALIDITY
from app.src.db import Order, OrderApproval
from app.src import exceptions, getters
from app.src.core import approval as core
from app.src.enums import ApprovalStatus, ApprovalType
from app.src.loggers import logEvent
from app.src.functions import enumStr, fuseExceptionResponses, toDict
from app.src.schemas import Money, MoneyOut
from app.src.urls import URL_ORDER_APPROVAL

route_approval = APIRouter()


## Output Schema
class ApprovalSchema(BaseModel):
    id: int
    order_id: int
    driver_id: int
    approval_type: int
    status: int
    proposed_price: Optional[MoneyOut]
    expires_at: datetime
    responded_on: Optional[datetime]
    created_by_id: int
    created_on: datetime


def approvalData(approval: OrderApproval) -> dict:
    return jsonable_encoder(ApprovalSchema(**toDict(approval)))


## Input Forms
class CreateForm(BaseModel):
    order_id: int
    driver_id: int
    approval_type: ApprovalType = Field(description=enumStr(ApprovalType))
    proposed_price: Money | None = None
    validity: int = Field(
        default=APPROVAL_VALIDITY,
        gt=0,
        le=7 * APPROVAL_VALIDITY,
        description="Lifetime of the proposal in seconds",
    )


class ResponseForm(BaseModel):
    id: int
    accept: bool


## Query Params
class QueryParams(BaseModel):
    order_id: int | None = Field(Query(default=None))
    status: ApprovalStatus | None = Field(
        Query(default=None, description=enumStr(ApprovalStatus))
    )


## API endpoints
@route_approval.post(
    URL_ORDER_APPROVAL,
    tags=["Approval"],
    response_model=ApprovalSchema,
    status_code=status.HTTP_201_CREATED,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
            exceptions.UnknownValue(OrderApproval.driver_id),
            exceptions.InvalidAssociation(
                OrderApproval.driver_id, OrderApproval.order_id
            ),
            exceptions.MissingParameter(OrderApproval.proposed_price),
            exceptions.AuctionOrderLocked(),
            exceptions.InvalidStateTransition(Order.status),
            exceptions.DuplicateApproval(),
        ]
    ),
    description="""
    Propose a change of an order to a driver.
    Only administrators can create proposals.
    ASSIGNMENT proposals need an OPEN order that was not spawned by an auction.
    PRICE_ADJUSTMENT proposals need a proposed_price and the order's current driver.
    AUCTION_PURCHASE proposals need an auction order and its buyer.
    At most one pending proposal of each type exists per order.
    The proposal expires after `validity` seconds.
    """,
)
async def create_approval(
    fParam: CreateForm = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        approval = core.createApproval(
            session,
            user,
            fParam.order_id,
            fParam.driver_id,
            fParam.approval_type,
            fParam.proposed_price,
            fParam.validity,
        )

        data = approvalData(approval)
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)


@route_approval.patch(
    URL_ORDER_APPROVAL,
    tags=["Approval"],
    response_model=ApprovalSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InactiveAccount(),
            exceptions.InvalidIdentifier(),
            exceptions.ApprovalExpired(),
            exceptions.InvalidStateTransition(OrderApproval.status),
        ]
    ),
    description="""
    Accept or reject a pending proposal.
    Only the addressed driver can respond.
    Accepting an ASSIGNMENT assigns the order to the driver and moves it to IN_PROGRESS.
    Accepting a PRICE_ADJUSTMENT sets the order price to the proposed price.
    A proposal answered after its expiry is marked EXPIRED and ApprovalExpired is returned.
    """,
)
async def respond_approval(
    fParam: ResponseForm = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        approval = core.respondToApproval(session, user, fParam.id, fParam.accept)

        data = approvalData(approval)
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)


@route_approval.get(
    URL_ORDER_APPROVAL,
    tags=["Approval"],
    response_model=List[ApprovalSchema],
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.NoPermission()]
    ),
    description="""
    Fetch proposals, optionally by order and status.
    Administrators see every proposal, drivers the proposals addressed to them.
    """,
)
async def fetch_approval(
    qParam: QueryParams = Depends(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        return [
            approvalData(approval)
            for approval in core.getApprovals(
                session, user, qParam.order_id, qParam.status
            )
        ]
    except Exception as e:
        exceptions.handle(e)
