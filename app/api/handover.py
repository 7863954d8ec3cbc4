from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from sqlalchemy.orm.session import Session

from app.api.bearer import bearer_user
from app.api.order import OrderSchema
from app.src.db import Order, VehicleHandover
from app.src import exceptions, getters
from app.src.core import handover as core
from app.src.loggers import logEvent
from app.src.functions import fuseExceptionResponses, toDict
from app.src.schemas import HandoverDetails
from app.src.urls import URL_ORDER_HANDOVER

route_handover = APIRouter()


## Output Schema
class HandoverSchema(BaseModel):
    id: int
    order_id: int
    driver_id: int
    handover_type: int
    km_reading: int
    fuel_level: Optional[str]
    vehicle_condition: str
    damage_notes: Optional[str]
    photos: List[str]
    signature: Optional[str]
    location: str
    handover_on: datetime


class HandoverResultSchema(BaseModel):
    handover: HandoverSchema
    order: OrderSchema


## Input Forms
class CreateForm(HandoverDetails):
    order_id: int


## Query Params
class QueryParams(BaseModel):
    order_id: int | None = Field(Query(default=None))


## API endpoints
@route_handover.post(
    URL_ORDER_HANDOVER,
    tags=["Handover"],
    response_model=HandoverResultSchema,
    status_code=status.HTTP_201_CREATED,
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InactiveAccount(),
            exceptions.InvalidIdentifier(),
            exceptions.NotAssignedDriver(),
            exceptions.DuplicateHandover(),
            exceptions.InvalidStateTransition(Order.status),
        ]
    ),
    description="""
    Record the vehicle condition at pickup or delivery.
    Only the driver assigned to the order can submit handovers.
    A pickup is accepted in ASSIGNED or IN_PROGRESS status and moves the order to IN_PROGRESS.
    A delivery is accepted in IN_PROGRESS status and moves the order to COMPLETED.
    Each order has at most one pickup and one delivery handover.
    When no location is given, the order's pickup or delivery location is used.
    Log the handover with the updated order.
    """,
)
async def create_handover(
    fParam: CreateForm = Body(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
    request_info=Depends(getters.requestInfo),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        handover, order = core.createVehicleHandover(
            session, user, fParam.order_id, fParam
        )

        data = jsonable_encoder(
            HandoverResultSchema(
                handover=HandoverSchema(**toDict(handover)),
                order=OrderSchema(**toDict(order)),
            )
        )
        logEvent(user, request_info, data)
        return data
    except Exception as e:
        exceptions.handle(e)


@route_handover.get(
    URL_ORDER_HANDOVER,
    tags=["Handover"],
    response_model=List[HandoverSchema],
    responses=fuseExceptionResponses(
        [
            exceptions.InvalidToken(),
            exceptions.NoPermission(),
            exceptions.InvalidIdentifier(),
            exceptions.MissingParameter(VehicleHandover.order_id),
        ]
    ),
    description="""
    Fetch the handover reports of an order.
    Access follows the order: administrators see every order, disponents their own, drivers their assigned orders.
    Only administrators may omit the order_id to list every report.
    """,
)
async def fetch_handover(
    qParam: QueryParams = Depends(),
    bearer=Depends(bearer_user),
    session: Session = Depends(getters.dbSession),
):
    try:
        token, user = getters.tokenUser(bearer.credentials, session)
        return core.getHandovers(session, user, qParam.order_id)
    except Exception as e:
        exceptions.handle(e)
