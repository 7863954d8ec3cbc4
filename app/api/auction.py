from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import List, Optional
from fastapi import APIRouter, Body, Depends, Query, Response, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlalchemy.orm.session import Session

from app.api.bearer import bearer_user
from app.api.order import OrderSchema
from app.src.db import Auction, User
from app.src import exceptions, getters, policy
from app.src.core import auction as core
from app.src.enums import AuctionStatus, OrderIn, UserRole
from app.src.loggers import logEvent
from app.src.functions import enumStr, fuseExceptionResponses, toDict
from app.src.schemas import AuctionDetails, MoneyOut
from app.src.urls import URL_AUCTION, URL_AUCTION_PURCHASE, URL_AUCTION_STATUS

route_auction = APIRouter()


## Output Schema
class AuctionSchema(BaseModel):
    id: int
    pickup_location: str
    delivery_location: str
    vehicle_brand: str
    vehicle_model: str
    vehicle_year: Optional[int]
    pickup_date: datetime
    delivery_date: Optional[datetime]
    pickup_time_from: str
    pickup_time_to: str
    delivery_time_from: str
    delivery_time_to: str
    instant_price: MoneyOut
    distance: Optional[int]
    notes: Optional[str]
    status: int
    purchased_by_id: Optional[int]
    purchased_at: Optional[datetime]
    created_by_id: int
    updated_on: Optional[datetime]
    created_on: datetime


class PurchaseSchema(BaseModel):
    auction: AuctionSchema
    order: OrderSchema


def auctionData(auction: Auction) -> dict:
    return jsonable_encoder(AuctionSchema(**toDict(auction)))


## Input Forms
class StatusForm(BaseModel):
    id: int
    status: AuctionStatus = Field(description=enumStr(AuctionStatus))


class PurchaseForm(BaseModel):
    id: int


class DeleteForm(BaseModel):
    id: int = Field(Query())


## Query Params
class OrderBy(IntEnum):
    id = 1
    pickup_date = 2
    instant_price = 3
    updated_on = 4
    created_on = 5


class QueryParams(BaseModel):
    # Filters
    pickup_location: str | None = Field(Query(default=None))
    delivery_location: str | None = Field(Query(default=None))
    vehicle_brand: str | None = Field(Query(default=None))
    purchased_by_id: int | None = Field(Query(default=None))
    # id based
    id: int | None = Field(Query(default=None))
    id_ge: int | None = Field(Query(default=None))
    id_le: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # status based
    status: AuctionStatus | None = Field(
        Query(default=None, description=enumStr(AuctionStatus))
    )
    # instant_price based
    instant_price_ge: Decimal | None = Field(Query(default=None, ge=0))
    instant_price_le: Decimal | None = Field(Query(default=None, ge=0))
    # pickup_date based
    pickup_date_ge: datetime | None = Field(Query(default=None))
    pickup_date_le: datetime | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(Query(default=OrderBy.id, description=enumStr(OrderBy)))
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


# Functions
def searchAuction(session: Session, user: User, qParam: QueryParams) -> List[Auction]:
    policy.authorize(user, policy.Action.VIEW_AUCTION)
    query = session.query(Auction)

    # Scope
    if user.role == UserRole.DISPONENT:
        query = query.filter(Auction.status == AuctionStatus.ACTIVE)
    elif user.role == UserRole.DRIVER:
        query = query.filter(
            or_(
                Auction.status == AuctionStatus.ACTIVE,
                Auction.purchased_by_id == user.id,
            )
        )

    # Filters
    if qParam.pickup_location is not None:
        query = query.filter(
            Auction.pickup_location.ilike(f"%{qParam.pickup_location}%")
        )
    if qParam.delivery_location is not None:
        query = query.filter(
            Auction.delivery_location.ilike(f"%{qParam.delivery_location}%")
        )
    if qParam.vehicle_brand is not None:
        query = query.filter(Auction.vehicle_brand.ilike(f"%{qParam.vehicle_brand}%"))
    if qParam.purchased_by_id is not None:
        query = query.filter(Auction.purchased_by_id == qParam.purchased_by_id)
    # id based filters
    if qParam.id is not None:
        query = query.filter(Auction.id == qParam.id)
    if qParam.id_ge is not None:
        query = query.filter(Auction.id >= qParam.id_ge)
    if qParam.id_le is not None:
        query = query.filter(Auction.id <= qParam.id_le)
    if qParam.id_list is not None:
        query = query.filter(Auction.id.in_(qParam.id_list))
    # status based filters
    if qParam.status is not None:
        query = query.filter(Auction.status == qParam.status)
    # instant_price based filters
    if qParam.instant_price_ge is not None:
        query = query.filter(Auction.instant_price >= qParam.instant_price_ge)
    if qParam.instant_price_le is not None:
        query = query.filter(Auction.instant_price <= qParam.instant_price_le)
    # pickup_date based filters
    if qParam.pickup_date_ge is not None:
        query = query.filter(Auction.pickup_date >= qParam.pickup_date_ge)
    if qParam.pickup_date_le is not None:
        query = query.filter(Auction.pickup_date <= qParam.pickup_date_le)

    # Ordering
    orderingAttribute = getattr(Auction, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc())
    else:
        query = query.order_by(orderingAttribute.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints
@route_auction.post(
    URL_AUCTION,
    tags=["Auction"],
    response_model=AuctionSchema,
    status_code=status.HTTP_201_CREATED,
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.NoPermission()]
    ),
    description="""
    List a new instant-buy auction.
    Only administrators can create auctions.
    All four time windows are mandatory and use the HH:MM format.
    The auction is created in ACTIVE status.
    Log the auction creation activity with the acting user.
    """,
)
async def create_auction(
    fParam: AuctionDetails = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        auction = core.createAuction(session, user, fParam)

        data = auctionData(auction)
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)


@route_auction.patch(
    URL_AUCTION_STATUS,
    tags=["Auction"],
    response_model=AuctionSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
            exceptions.InvalidStateTransition(Auction.status),
        ]
    ),
    description="""
    Cancel or re-list an auction.
    Only administrators can change the auction status.
    SOLD can only be reached through a purchase and is final.

    Allowed status transitions:
        ACTIVE ↔ CANCELLED
    """,
)
async def update_auction_status(
    fParam: StatusForm = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        auction = core.updateAuctionStatus(session, user, fParam.id, fParam.status)

        data = auctionData(auction)
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)


@route_auction.delete(
    URL_AUCTION,
    tags=["Auction"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=fuseExceptionResponses(
        [exceptions.InvalidToken(), exceptions.NoPermission()]
    ),
    description="""
    Delete an auction by ID.
    Only administrators can delete auctions.
    An order spawned by the auction keeps running, its auction reference is cleared.
    If the auction does not exist, the operation is silently ignored.
    """,
)
async def delete_auction(
    fParam: DeleteForm = Depends(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        if core.deleteAuction(session, user, fParam.id):
            logEvent(user, request_info, {"id": fParam.id})
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)


@route_auction.get(
    URL_AUCTION,
    tags=["Auction"],
    response_model=List[AuctionSchema],
    responses=fuseExceptionResponses([exceptions.InvalidToken()]),
    description="""
    Fetch auctions with filtering, ordering and pagination.
    Administrators see every auction.
    Drivers see active auctions and the auctions they bought.
    Disponents only see active auctions.
    """,
)
async def fetch_auction(
    qParam: QueryParams = Depends(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        return [
            auctionData(auction) for auction in searchAuction(session, user, qParam)
        ]
    except Exception as e:
        exceptions.handle(e)


@route_auction.post(
    URL_AUCTION_PURCHASE,
    tags=["Auction"],
    response_model=PurchaseSchema,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InactiveAccount(),
            exceptions.NotAvailable(),
        ]
    ),
    description="""
    Buy an auction at its instant price.
    Only active drivers can purchase auctions.
    The auction is marked SOLD to the driver, an order owned by the driver is created in IN_PROGRESS status,
    and an order payment of the instant price is billed to the driver, all in one transaction.
    Each auction is sold at most once; every competing purchase receives NotAvailable.
    Log the purchase with the sold auction and the new order.
    """,
)
async def purchase_auction(
    fParam: PurchaseForm = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        auction, order = core.purchaseAuction(session, user, fParam.id)

        data = jsonable_encoder(
            PurchaseSchema(
                auction=AuctionSchema(**toDict(auction)),
                order=OrderSchema(**toDict(order)),
            )
        )
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)
