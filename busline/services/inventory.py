"""Seat availability for a journey (bus + route + calendar day)."""
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from busline.metrics import INVENTORY_LATENCY
from busline.models.models import Booking, Bus, ACTIVE_STATUSES, HELD_STATUSES, PENDING
from busline.services.errors import NotFoundError, transaction
from busline.services.sweeper import sweep_expired

FREE = "free"
OCCUPIED = "occupied"


def journey_day(value) -> date:
    # journeys are keyed by calendar day; time of day is ignored
    if isinstance(value, datetime):
        return value.date()
    return value


@dataclass(frozen=True)
class Inventory:
    occupied: FrozenSet[str] = frozenset()
    pending: FrozenSet[str] = frozenset()
    released: int = 0

    def is_free(self, seat: str) -> bool:
        return seat not in self.occupied and seat not in self.pending


@dataclass
class SeatState:
    number: str
    state: str = FREE
    booking_id: Optional[str] = None


@dataclass
class SeatMap:
    bus_id: int
    route_id: int
    journey_date: date
    capacity: int
    seats: List[SeatState] = field(default_factory=list)
    released: int = 0


async def _active_bookings(db: AsyncSession, bus_id: int, route_id: int, journey_date: date) -> List[Booking]:
    stmt = (
        sa_select(Booking)
        .where(Booking.bus_id == bus_id)
        .where(Booking.route_id == route_id)
        .where(Booking.journey_date == journey_date)
        .where(Booking.status.in_(ACTIVE_STATUSES))
        .execution_options(populate_existing=True)
    )
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def resolve_inventory(db: AsyncSession, bus_id: int, route_id: int, journey_date, now: Optional[datetime] = None) -> Inventory:
    """Return occupied (paid/approved) and pending seats for a journey.

    Expired reservations are swept first. A seat that shows up in both sets
    is reported as occupied only.
    """
    released = await sweep_expired(db, now=now)
    start = time.perf_counter()
    async with transaction(db):
        bookings = await _active_bookings(db, bus_id, route_id, journey_day(journey_date))
    occupied, pending = set(), set()
    for booking in bookings:
        target = occupied if booking.status in HELD_STATUSES else pending
        target.update(str(s) for s in booking.seats)
    INVENTORY_LATENCY.observe(time.perf_counter() - start)
    return Inventory(occupied=frozenset(occupied), pending=frozenset(pending - occupied), released=released)


async def seat_map(db: AsyncSession, bus_id: int, route_id: int, journey_date, now: Optional[datetime] = None) -> SeatMap:
    """Every seat of the bus with its state and the booking holding it."""
    released = await sweep_expired(db, now=now)
    day = journey_day(journey_date)
    async with transaction(db):
        bus = await db.get(Bus, bus_id)
        if bus is None:
            raise NotFoundError(f"Bus {bus_id} not found")
        bookings = await _active_bookings(db, bus_id, route_id, day)

    holders: Dict[str, Booking] = {}
    for booking in bookings:
        for seat in booking.seats:
            current = holders.get(str(seat))
            # paid/approved wins over pending
            if current is None or current.status == PENDING:
                holders[str(seat)] = booking

    seats = []
    for n in range(1, bus.capacity + 1):
        holder = holders.get(str(n))
        if holder is None:
            seats.append(SeatState(number=str(n)))
        else:
            state = PENDING if holder.status == PENDING else OCCUPIED
            seats.append(SeatState(number=str(n), state=state, booking_id=holder.id))
    return SeatMap(bus_id=bus_id, route_id=route_id, journey_date=day, capacity=bus.capacity, seats=seats, released=released)
