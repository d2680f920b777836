from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import date, datetime
from decimal import Decimal


class BookingCreate(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: Optional[str] = None
    emergency_contact: Optional[str] = None
    route_id: int
    bus_id: int
    date: date
    seats: List[str] = Field(default_factory=list, description="Seat numbers, 1..bus capacity")
    referral_code: Optional[str] = Field(None, description="Referrer's phone number")


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    client_reference: str
    name: str
    phone: str
    email: Optional[str] = None
    emergency_contact: Optional[str] = None
    route_id: Optional[int] = None
    bus_id: Optional[int] = None
    journey_date: date
    pickup: str
    destination: str
    bus_type: Optional[str] = None
    seats: List[str]
    total_amount: Decimal
    referral_id: Optional[int] = None
    status: str
    created_at: datetime
    rejection_reason: Optional[str] = None
    hubtel_transaction_id: Optional[str] = None
    payment_status: Optional[str] = None
    amount_paid: Optional[Decimal] = None
    payment_method: Optional[str] = None


class BookingCreated(BaseModel):
    booking: BookingOut
    checkout_url: str


class InventoryOut(BaseModel):
    bus_id: int
    route_id: int
    date: date
    occupied: List[str]
    pending: List[str]
    released: int = 0


class SeatStateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    number: str
    state: str
    booking_id: Optional[str] = None


class SeatMapOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    bus_id: int
    route_id: int
    journey_date: date
    capacity: int
    seats: List[SeatStateOut]
    released: int = 0


class PassengerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phone: str
    name: str
    emergency_contact: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str = Field("Manually rejected by admin", min_length=1)


class SweepResult(BaseModel):
    released: int


class TransitionOut(BaseModel):
    changed: bool
    booking: Optional[BookingOut] = None


class AuditEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    actor_id: Optional[int] = None
    action: str
    detail: Optional[dict] = None
    created_at: datetime
