"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    Field,
    PlainSerializer,
    field_validator,
)

from bikerental.domain.entities import Location, as_utc
from bikerental.domain.enums import (
    BicycleStatus,
    EventStatus,
    MaintenanceType,
    RentalStatus,
)
from bikerental.domain.pricing import CostBreakdown

# Decimals in, JSON numbers out
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]

CLOCK_TIME = r"^([01]\d|2[0-3]):[0-5]\d$"


def _not_null(value):
    """Partial updates may omit a required column but never clear it."""
    if value is None:
        raise ValueError("may be omitted but cannot be null")
    return value


class LocationSchema(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> Location:
        return Location(self.latitude, self.longitude)

    @classmethod
    def from_pair(cls, lat, lng) -> Optional["LocationSchema"]:
        if lat is None or lng is None:
            return None
        return cls(latitude=lat, longitude=lng)


# ── Bicycles ──────────────────────────────────────────────────────────


class BicycleCreateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    brand: str = Field(..., min_length=1, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    color: str = Field(..., min_length=1, max_length=50)
    rental_price_per_hour: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    current_location: Optional[LocationSchema] = None
    purchase_date: Optional[date] = None
    last_maintenance_date: Optional[date] = None


class BicycleUpdateRequest(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    brand: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    color: Optional[str] = Field(None, min_length=1, max_length=50)
    rental_price_per_hour: Optional[Decimal] = Field(
        None, gt=0, max_digits=12, decimal_places=2
    )
    purchase_date: Optional[date] = None
    last_maintenance_date: Optional[date] = None

    reject_null = field_validator(
        "code", "brand", "color", "rental_price_per_hour", mode="before"
    )(_not_null)


class BicycleStatusRequest(BaseModel):
    status: BicycleStatus


class BicycleLocationRequest(BaseModel):
    location: LocationSchema


class BicycleResponse(BaseModel):
    id: int
    code: str
    brand: str
    model: Optional[str] = None
    color: str
    status: BicycleStatus
    rental_price_per_hour: Money
    current_location: Optional[LocationSchema] = None
    purchase_date: Optional[date] = None
    last_maintenance_date: Optional[date] = None
    is_active: bool = True

    @classmethod
    def from_model(cls, bicycle) -> "BicycleResponse":
        return cls(
            id=bicycle.id,
            code=bicycle.code,
            brand=bicycle.brand,
            model=bicycle.model,
            color=bicycle.color,
            status=bicycle.status,
            rental_price_per_hour=bicycle.rental_price_per_hour,
            current_location=LocationSchema.from_pair(
                bicycle.current_lat, bicycle.current_lng
            ),
            purchase_date=bicycle.purchase_date,
            last_maintenance_date=bicycle.last_maintenance_date,
            is_active=bicycle.is_active,
        )


class NearbyBicycleResponse(BaseModel):
    bicycle: BicycleResponse
    distance_m: float


# Reference fields are a tagged union at the boundary only; the core
# always works with plain ids.


class BicycleReference(BaseModel):
    kind: Literal["reference"] = "reference"
    id: int


class ExpandedBicycle(BicycleResponse):
    kind: Literal["expanded"] = "expanded"


BicycleRef = Annotated[
    Union[BicycleReference, ExpandedBicycle], Field(discriminator="kind")
]


# ── Rentals ───────────────────────────────────────────────────────────


class RentalCreateRequest(BaseModel):
    bicycle_id: int = Field(..., ge=1)
    start_location: Optional[LocationSchema] = None


class RentalReturnRequest(BaseModel):
    end_location: Optional[LocationSchema] = None


class RentalResponse(BaseModel):
    id: int
    user_id: int
    bicycle: BicycleRef
    status: RentalStatus
    start_date: UtcDatetime
    end_date: Optional[UtcDatetime] = None
    start_location: Optional[LocationSchema] = None
    end_location: Optional[LocationSchema] = None
    estimated_cost: Optional[Money] = None
    subtotal: Optional[Money] = None
    discount: Optional[Money] = None
    discount_percentage: Optional[Money] = None
    final_cost: Optional[Money] = None
    total_cost: Optional[Money] = None
    duration_in_hours: Optional[float] = None

    @classmethod
    def from_model(cls, rental, bicycle=None) -> "RentalResponse":
        ref = (
            ExpandedBicycle(**BicycleResponse.from_model(bicycle).model_dump())
            if bicycle is not None
            else BicycleReference(id=rental.bicycle_id)
        )
        return cls(
            id=rental.id,
            user_id=rental.user_id,
            bicycle=ref,
            status=rental.status,
            start_date=rental.start_date,
            end_date=rental.end_date,
            start_location=LocationSchema.from_pair(rental.start_lat, rental.start_lng),
            end_location=LocationSchema.from_pair(rental.end_lat, rental.end_lng),
            estimated_cost=rental.estimated_cost,
            subtotal=rental.subtotal,
            discount=rental.discount,
            discount_percentage=rental.discount_percentage,
            final_cost=rental.final_cost,
            total_cost=rental.total_cost,
            duration_in_hours=rental.duration_in_hours,
        )


class CostEstimate(BaseModel):
    hours: int
    subtotal: Money
    discount_percentage: Money
    discount: Money
    total: Money

    @classmethod
    def from_breakdown(cls, hours: int, cost: CostBreakdown) -> "CostEstimate":
        return cls(
            hours=hours,
            subtotal=cost.subtotal,
            discount_percentage=cost.discount_percentage,
            discount=cost.discount,
            total=cost.total,
        )


class EstimateResponse(BaseModel):
    bicycle_id: int
    estimates: list[CostEstimate]


# ── Events ────────────────────────────────────────────────────────────


class EventCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    event_type: Optional[str] = Field(None, max_length=50)
    event_date: datetime
    start_time: str = Field(..., pattern=CLOCK_TIME)
    end_time: Optional[str] = Field(None, pattern=CLOCK_TIME)
    route_description: Optional[str] = None
    meeting_point: Optional[str] = Field(None, max_length=255)
    max_participants: Optional[int] = Field(None, ge=1)
    status: EventStatus = EventStatus.DRAFT


class EventUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    event_type: Optional[str] = Field(None, max_length=50)
    event_date: Optional[datetime] = None
    start_time: Optional[str] = Field(None, pattern=CLOCK_TIME)
    end_time: Optional[str] = Field(None, pattern=CLOCK_TIME)
    route_description: Optional[str] = None
    meeting_point: Optional[str] = Field(None, max_length=255)
    max_participants: Optional[int] = Field(None, ge=1)
    status: Optional[EventStatus] = None

    reject_null = field_validator(
        "name", "event_date", "start_time", "status", mode="before"
    )(_not_null)


class EventResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    event_type: Optional[str] = None
    event_date: UtcDatetime
    start_time: str
    end_time: Optional[str] = None
    route_description: Optional[str] = None
    meeting_point: Optional[str] = None
    max_participants: Optional[int] = None
    current_participants: int
    status: EventStatus
    effective_status: EventStatus
    created_by: Optional[int] = None

    @classmethod
    def from_model(cls, event, effective_status: EventStatus) -> "EventResponse":
        return cls(
            id=event.id,
            name=event.name,
            description=event.description,
            event_type=event.event_type,
            event_date=event.event_date,
            start_time=event.start_time,
            end_time=event.end_time,
            route_description=event.route_description,
            meeting_point=event.meeting_point,
            max_participants=event.max_participants,
            current_participants=event.current_participants,
            status=event.status,
            effective_status=effective_status,
            created_by=event.created_by,
        )


class ParticipantResponse(BaseModel):
    id: int
    event_id: int
    user_id: int
    registration_date: UtcDatetime
    attended: bool

    model_config = {"from_attributes": True}


# ── Maintenance ───────────────────────────────────────────────────────


class MaintenanceCreateRequest(BaseModel):
    bicycle_id: int = Field(..., ge=1)
    maintenance_type: MaintenanceType
    description: Optional[str] = None
    cost: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    performed_by: Optional[str] = Field(None, max_length=120)
    maintenance_date: Optional[datetime] = None
    next_maintenance_date: Optional[datetime] = None


class MaintenanceUpdateRequest(BaseModel):
    bicycle_id: Optional[int] = Field(None, ge=1)
    maintenance_type: Optional[MaintenanceType] = None
    description: Optional[str] = None
    cost: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    performed_by: Optional[str] = Field(None, max_length=120)
    maintenance_date: Optional[datetime] = None
    next_maintenance_date: Optional[datetime] = None

    reject_null = field_validator(
        "bicycle_id", "maintenance_type", "maintenance_date", mode="before"
    )(_not_null)


class MaintenanceResponse(BaseModel):
    id: int
    bicycle_id: int
    maintenance_type: MaintenanceType
    description: Optional[str] = None
    cost: Optional[Money] = None
    performed_by: Optional[str] = None
    maintenance_date: UtcDatetime
    next_maintenance_date: Optional[UtcDatetime] = None
    completed: bool
    completed_at: Optional[UtcDatetime] = None

    model_config = {"from_attributes": True}


# ── Misc ──────────────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    kind: str
