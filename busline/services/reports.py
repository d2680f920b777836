import calendar
from decimal import Decimal
from typing import Optional

from sqlalchemy import select as sa_select, func
from sqlalchemy.ext.asyncio import AsyncSession

from busline.models.models import Booking, Bus, Passenger, PAID, PENDING
from busline.services.errors import transaction

MONTHS = [calendar.month_abbr[m] for m in range(1, 13)]


async def overview(db: AsyncSession, year: Optional[int] = None) -> dict:
    """Dashboard figures: revenue, passengers, bookings and fleet size."""
    async with transaction(db):
        paid = (await db.execute(sa_select(Booking.journey_date, Booking.total_amount).where(Booking.status == PAID))).all()
        total_bookings = (await db.execute(sa_select(func.count(Booking.id)).where(Booking.status.in_((PAID, PENDING))))).scalar_one()
        passengers = (await db.execute(sa_select(func.count(Passenger.phone)))).scalar_one()
        active_buses = (await db.execute(sa_select(func.count(Bus.id)).where(Bus.active.is_(True)))).scalar_one()

    monthly = {m: Decimal("0") for m in MONTHS}
    total = Decimal("0")
    for journey_date, amount in paid:
        amount = Decimal(amount or 0)
        total += amount
        if year is None or journey_date.year == year:
            monthly[MONTHS[journey_date.month - 1]] += amount

    return {
        "total_revenue": total,
        "total_passengers": passengers,
        "total_bookings": total_bookings,
        "active_buses": active_buses,
        "monthly_revenue": [{"name": m, "total": monthly[m]} for m in MONTHS],
    }
