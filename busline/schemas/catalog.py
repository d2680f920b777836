from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import date
from decimal import Decimal


class RegionIn(BaseModel):
    name: str = Field(..., min_length=1)


class RegionOut(RegionIn):
    model_config = ConfigDict(from_attributes=True)

    id: int


class RouteIn(BaseModel):
    pickup: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    price: Decimal = Field(..., gt=0)
    region_id: Optional[int] = None
    active: bool = True


class RouteUpdate(BaseModel):
    pickup: Optional[str] = None
    destination: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0)
    region_id: Optional[int] = None
    active: Optional[bool] = None


class RouteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    pickup: str
    destination: str
    price: Optional[Decimal] = None
    region_id: Optional[int] = None
    active: bool


class BusIn(BaseModel):
    number_plate: str = Field(..., min_length=1)
    capacity: int = Field(..., ge=1)
    active: bool = True


class BusUpdate(BaseModel):
    number_plate: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1)
    active: Optional[bool] = None


class BusOut(BusIn):
    model_config = ConfigDict(from_attributes=True)

    id: int


class SessionsIn(BaseModel):
    name: Optional[str] = None
    route_ids: List[int] = Field(..., min_length=1)
    bus_ids: List[int] = Field(..., min_length=1)
    departure_dates: List[date] = Field(..., min_length=1)


class SessionUpdate(BaseModel):
    name: Optional[str] = None
    route_id: Optional[int] = None
    bus_id: Optional[int] = None
    departure_date: Optional[date] = None


class SessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: Optional[str] = None
    route_id: int
    bus_id: int
    departure_date: date


class ReferralIn(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)


class ReferralOut(ReferralIn):
    model_config = ConfigDict(from_attributes=True)

    id: int


class ReferralStat(BaseModel):
    referral_id: int
    name: str
    phone: str
    count: int


class MonthlyRevenue(BaseModel):
    name: str
    total: Decimal


class Overview(BaseModel):
    total_revenue: Decimal
    total_passengers: int
    total_bookings: int
    active_buses: int
    monthly_revenue: List[MonthlyRevenue]
