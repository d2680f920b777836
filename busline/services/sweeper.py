"""Releases pending reservations whose payment window has lapsed."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select as sa_select, update as sa_update, delete as sa_delete
from sqlalchemy.ext.asyncio import AsyncSession

from busline.config import settings
from busline.metrics import BOOKING_TRANSITIONS, SEATS_RELEASED
from busline.models.models import Booking, SeatHold, PENDING, REJECTED
from busline.services.errors import transaction

logger = logging.getLogger(__name__)

TIMEOUT_REASON = "Payment timed out"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def sweep_expired(db: AsyncSession, now: Optional[datetime] = None, ttl_seconds: Optional[int] = None) -> int:
    """Reject every pending booking created at least ``ttl_seconds`` before ``now``.

    Each booking's status change and seat release happen in the same
    transaction. The update is conditional on the booking still being
    pending, so overlapping sweeps release a booking at most once.
    Returns the number of bookings released by this call.
    """
    now = now or utcnow()
    ttl = settings.RESERVATION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
    cutoff = now - timedelta(seconds=ttl)

    released = 0
    async with transaction(db):
        stmt = (
            sa_select(Booking.id)
            .where(Booking.status == PENDING)
            .where(Booking.created_at <= cutoff)
            .with_for_update(skip_locked=True)
        )
        expired_ids = list((await db.execute(stmt)).scalars().all())
        for booking_id in expired_ids:
            upd = (
                sa_update(Booking)
                .where(Booking.id == booking_id)
                .where(Booking.status == PENDING)
                .values(status=REJECTED, rejection_reason=TIMEOUT_REASON, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            result = await db.execute(upd)
            if result.rowcount != 1:
                continue
            await db.execute(sa_delete(SeatHold).where(SeatHold.booking_id == booking_id))
            released += 1

    if released:
        SEATS_RELEASED.inc(released)
        BOOKING_TRANSITIONS.labels(target=REJECTED).inc(released)
        logger.info("Released seats for %d expired bookings", released)
    return released
