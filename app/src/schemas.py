from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional
from pydantic import BaseModel, Field, PlainSerializer

from app.src.constants import (
    MAX_HANDOVER_PHOTOS,
    MAX_MONEY_DIGITS,
    REGEX_TIME_WINDOW,
)
from app.src.enums import HandoverType


# Money travels as a fixed-point string with two fractional digits
Money = Annotated[
    Decimal,
    Field(gt=0, max_digits=MAX_MONEY_DIGITS, decimal_places=2),
    PlainSerializer(lambda value: f"{value:.2f}", return_type=str, when_used="json"),
]
MoneyOut = Annotated[
    Decimal,
    PlainSerializer(lambda value: f"{value:.2f}", return_type=str, when_used="json"),
]
TimeWindow = Annotated[str, Field(pattern=REGEX_TIME_WINDOW)]


class RequestInfo(BaseModel):
    method: str
    path: str


class HealthStatus(BaseModel):
    status: str
    version: str


class ErrorResponse(BaseModel):
    detail: str


## Transaction core inputs
class OrderDetails(BaseModel):
    pickup_location: str = Field(min_length=1, max_length=256)
    delivery_location: str = Field(min_length=1, max_length=256)
    vehicle_brand: str = Field(min_length=1, max_length=64)
    vehicle_model: str = Field(min_length=1, max_length=64)
    vehicle_year: int | None = Field(default=None, ge=1900, le=2100)
    pickup_date: datetime
    delivery_date: datetime | None = None
    pickup_time_from: TimeWindow | None = None
    pickup_time_to: TimeWindow | None = None
    delivery_time_from: TimeWindow | None = None
    delivery_time_to: TimeWindow | None = None
    price: Money
    distance: int | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=2048)


class OrderChanges(BaseModel):
    pickup_location: str | None = Field(default=None, min_length=1, max_length=256)
    delivery_location: str | None = Field(default=None, min_length=1, max_length=256)
    vehicle_brand: str | None = Field(default=None, min_length=1, max_length=64)
    vehicle_model: str | None = Field(default=None, min_length=1, max_length=64)
    vehicle_year: int | None = Field(default=None, ge=1900, le=2100)
    pickup_date: datetime | None = None
    delivery_date: datetime | None = None
    pickup_time_from: TimeWindow | None = None
    pickup_time_to: TimeWindow | None = None
    delivery_time_from: TimeWindow | None = None
    delivery_time_to: TimeWindow | None = None
    price: Money | None = None
    distance: int | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=2048)


class AuctionDetails(BaseModel):
    pickup_location: str = Field(min_length=1, max_length=256)
    delivery_location: str = Field(min_length=1, max_length=256)
    vehicle_brand: str = Field(min_length=1, max_length=64)
    vehicle_model: str = Field(min_length=1, max_length=64)
    vehicle_year: int | None = Field(default=None, ge=1900, le=2100)
    pickup_date: datetime
    delivery_date: datetime | None = None
    pickup_time_from: TimeWindow
    pickup_time_to: TimeWindow
    delivery_time_from: TimeWindow
    delivery_time_to: TimeWindow
    instant_price: Money
    distance: int | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=2048)


class HandoverDetails(BaseModel):
    handover_type: HandoverType
    km_reading: int = Field(ge=0)
    fuel_level: str | None = Field(default=None, max_length=32)
    vehicle_condition: str = Field(min_length=1, max_length=2048)
    damage_notes: str | None = Field(default=None, max_length=2048)
    photos: List[str] = Field(default_factory=list, max_length=MAX_HANDOVER_PHOTOS)
    signature: Optional[str] = None
    location: str | None = Field(default=None, max_length=256)
