"""Booking lifecycle: seat acquisition and status transitions.

Statuses::

    pending  -> approved | paid | rejected
    approved -> pending | rejected
    paid     -> rejected          (admin seat release only)

Every transition is one conditional UPDATE of the booking row, together
with its seat-hold and audit changes, inside a single transaction. A
booking that is missing or no longer in an allowed source status is left
alone and the call returns None, so webhook re-delivery and sweeper races
are harmless.
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Iterable, List, Optional
from uuid import uuid4

from sqlalchemy import select as sa_select, update as sa_update, delete as sa_delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from busline.config import settings
from busline.metrics import BOOKING_TRANSITIONS, PAYMENT_FAILURE, PAYMENT_SUCCESS, SEAT_CONFLICTS
from busline.models.models import (
    Booking,
    Bus,
    JourneySession,
    Passenger,
    Referral,
    Route,
    SeatHold,
    User,
    ACTIVE_STATUSES,
    APPROVED,
    PAID,
    PENDING,
    REJECTED,
    ROLE_SUPER_ADMIN,
)
from busline.schemas.booking import BookingCreate
from busline.services.audit import log_audit
from busline.services.errors import NotFoundError, PermissionDenied, SeatConflict, ValidationError, transaction
from busline.services.inventory import journey_day
from busline.services.payment_gateway import PaymentFields
from busline.services.sweeper import sweep_expired, utcnow

logger = logging.getLogger(__name__)


def validate_seats(seats: Iterable[str], capacity: int) -> List[str]:
    """Normalise seat numbers to strings of 1..capacity, rejecting bad input."""
    normalised = []
    for raw in seats or []:
        try:
            number = int(str(raw).strip())
        except ValueError:
            raise ValidationError(f"Invalid seat number: {raw!r}")
        if number < 1 or number > capacity:
            raise ValidationError(f"Seat {number} is outside 1..{capacity}")
        if str(number) in normalised:
            raise ValidationError(f"Seat {number} selected more than once")
        normalised.append(str(number))
    if not normalised:
        raise ValidationError("Please select at least one seat.")
    return normalised


class BookingLifecycle:
    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow, ttl_seconds: Optional[int] = None):
        self.db = db
        self.clock = clock
        self.ttl_seconds = settings.RESERVATION_TTL_SECONDS if ttl_seconds is None else ttl_seconds

    # seat acquisition

    async def create_pending(self, details: BookingCreate, now: Optional[datetime] = None) -> Booking:
        """Reserve seats for a journey and record a pending booking.

        The seat check and the insert run in one transaction; the unique
        (journey, seat) index on seat holds turns a concurrent winner into
        SeatConflict for the loser.
        """
        now = now or self.clock()
        await sweep_expired(self.db, now=now, ttl_seconds=self.ttl_seconds)
        day = journey_day(details.date)

        try:
            async with transaction(self.db):
                route = await self.db.get(Route, details.route_id)
                if route is None or not route.active:
                    raise ValidationError("Selected route is not available for booking")
                bus = await self.db.get(Bus, details.bus_id)
                if bus is None or not bus.active:
                    raise ValidationError("Selected bus is not available for booking")
                if not await self._scheduled(route.id, bus.id, day):
                    raise ValidationError("No scheduled departure for this journey")
                if route.price is None:
                    raise ValidationError("Route has no fare configured")
                seats = validate_seats(details.seats, bus.capacity)

                taken = await self._taken_seats(bus.id, route.id, day, seats)
                if taken:
                    raise SeatConflict(taken)

                booking_id = uuid4().hex
                booking = Booking(
                    id=booking_id,
                    client_reference=booking_id,
                    name=details.name,
                    phone=details.phone,
                    email=details.email,
                    emergency_contact=details.emergency_contact,
                    route_id=route.id,
                    bus_id=bus.id,
                    journey_date=day,
                    pickup=route.pickup,
                    destination=route.destination,
                    bus_type=bus.label,
                    seats=seats,
                    total_amount=Decimal(route.price) * len(seats),
                    referral_id=await self._referral_id(details.referral_code),
                    status=PENDING,
                    created_at=now,
                )
                self.db.add(booking)
                await self.db.flush()
                self.db.add_all([
                    SeatHold(booking_id=booking_id, bus_id=bus.id, route_id=route.id, journey_date=day, seat_number=s)
                    for s in seats
                ])
                await self.db.flush()
        except SeatConflict:
            SEAT_CONFLICTS.inc()
            raise
        except IntegrityError:
            # another booking claimed one of the seats between check and insert
            SEAT_CONFLICTS.inc()
            raise SeatConflict(seats)

        BOOKING_TRANSITIONS.labels(target=PENDING).inc()
        logger.info("Created pending booking %s seats=%s total=%s", booking.id, booking.seats, booking.total_amount)
        return booking

    async def _taken_seats(self, bus_id: int, route_id: int, day: date, seats: List[str]) -> List[str]:
        stmt = (
            sa_select(SeatHold.seat_number)
            .where(SeatHold.bus_id == bus_id)
            .where(SeatHold.route_id == route_id)
            .where(SeatHold.journey_date == day)
            .where(SeatHold.seat_number.in_(seats))
        )
        res = await self.db.execute(stmt)
        return list(res.scalars().all())

    async def _scheduled(self, route_id: int, bus_id: int, day: date) -> bool:
        stmt = (
            sa_select(JourneySession.id)
            .where(JourneySession.route_id == route_id)
            .where(JourneySession.bus_id == bus_id)
            .where(JourneySession.departure_date == day)
        )
        return (await self.db.execute(stmt)).first() is not None

    async def _referral_id(self, code: Optional[str]) -> Optional[int]:
        if not code:
            return None
        res = await self.db.execute(sa_select(Referral.id).where(Referral.phone == code.strip()))
        return res.scalars().first()

    # transitions

    async def confirm_paid(self, client_reference: str, payment: PaymentFields) -> Optional[Booking]:
        """Finalise a pending booking after the gateway reports success."""
        booking = await self._move(
            client_reference,
            by_reference=True,
            sources=(PENDING,),
            target=PAID,
            action="confirm_paid",
            after=self._upsert_passenger,
            hubtel_transaction_id=payment.transaction_id,
            payment_status=payment.status,
            amount_paid=payment.amount,
            payment_method=payment.method,
        )
        if booking is not None:
            PAYMENT_SUCCESS.labels(method=payment.method).inc()
        return booking

    async def confirm_paid_manually(self, booking_id: str, actor: Optional[User] = None) -> Optional[Booking]:
        booking = await self._move(
            booking_id,
            sources=(PENDING,),
            target=PAID,
            action="confirm_paid_manually",
            actor=actor,
            after=self._upsert_passenger,
            payment_status="Manual",
            payment_method="manual",
        )
        if booking is not None:
            PAYMENT_SUCCESS.labels(method="manual").inc()
        return booking

    async def approve(self, booking_id: str, actor: Optional[User] = None) -> Optional[Booking]:
        return await self._move(booking_id, sources=(PENDING,), target=APPROVED, action="approve_booking", actor=actor)

    async def unapprove(self, booking_id: str, actor: Optional[User] = None) -> Optional[Booking]:
        # back to the queue with a fresh payment window
        return await self._move(booking_id, sources=(APPROVED,), target=PENDING, action="unapprove_booking", actor=actor, created_at=self.clock())

    async def reject(self, booking_id: str, reason: str, actor: Optional[User] = None) -> Optional[Booking]:
        return await self._move(
            booking_id,
            sources=(PENDING, APPROVED),
            target=REJECTED,
            action="reject_booking",
            actor=actor,
            release=True,
            rejection_reason=reason,
        )

    async def release_seat(self, booking_id: str, actor: Optional[User] = None) -> Optional[Booking]:
        """Operator override: free the seats of any active booking."""
        reason = f"Manually cancelled by admin on {self.clock().date().isoformat()}"
        return await self._move(
            booking_id,
            sources=ACTIVE_STATUSES,
            target=REJECTED,
            action="release_seat",
            actor=actor,
            release=True,
            rejection_reason=reason,
        )

    async def payment_failed(self, client_reference: str, gateway_status: Optional[str] = None) -> Optional[Booking]:
        booking = await self._move(
            client_reference,
            by_reference=True,
            sources=(PENDING,),
            target=REJECTED,
            action="payment_failed",
            release=True,
            rejection_reason=f"Payment failed with Hubtel status: {gateway_status}",
        )
        if booking is not None:
            PAYMENT_FAILURE.labels(reason="gateway").inc()
        return booking

    async def purge(self, booking_id: str, actor: Optional[User] = None) -> bool:
        """Delete a booking record outright. Paid bookings need a Super-Admin."""
        async with transaction(self.db):
            booking = await self._load(booking_id)
            if booking is None:
                return False
            status = booking.status
            if status == PAID and (actor is None or actor.role != ROLE_SUPER_ADMIN):
                raise PermissionDenied("Only a Super-Admin may delete a paid booking")
            await self.db.execute(sa_delete(SeatHold).where(SeatHold.booking_id == booking.id))
            await self.db.execute(sa_delete(Booking).where(Booking.id == booking.id))
            await log_audit(self.db, actor_id=actor.id if actor else None, action="purge_booking", object_type="booking", object_id=booking_id, detail={"status": status})
        logger.info("Purged booking %s (was %s)", booking_id, status)
        return True

    # reads

    async def get_by_reference(self, client_reference: str) -> Booking:
        async with transaction(self.db):
            booking = await self._load(client_reference, by_reference=True, lock=False)
        if booking is None:
            raise NotFoundError(f"Booking {client_reference} not found")
        return booking

    async def list_bookings(self, status: Optional[str] = None) -> List[Booking]:
        stmt = sa_select(Booking).order_by(Booking.created_at.desc()).execution_options(populate_existing=True)
        if status:
            stmt = stmt.where(Booking.status == status)
        async with transaction(self.db):
            res = await self.db.execute(stmt)
            return list(res.scalars().all())

    async def list_passengers(self) -> List[Passenger]:
        async with transaction(self.db):
            res = await self.db.execute(sa_select(Passenger).order_by(Passenger.name, Passenger.phone))
            return list(res.scalars().all())

    # internals

    async def _load(self, key: str, by_reference: bool = False, lock: bool = True) -> Optional[Booking]:
        column = Booking.client_reference if by_reference else Booking.id
        stmt = sa_select(Booking).where(column == key).execution_options(populate_existing=True)
        if lock:
            stmt = stmt.with_for_update()
        res = await self.db.execute(stmt)
        return res.scalars().first()

    async def _upsert_passenger(self, booking: Booking):
        await self.db.merge(Passenger(phone=booking.phone, name=booking.name, emergency_contact=booking.emergency_contact))

    async def _move(self, key, sources, target, action, actor=None, by_reference=False, release=False, after=None, **values) -> Optional[Booking]:
        now = self.clock()
        async with transaction(self.db):
            booking = await self._load(key, by_reference=by_reference)
            if booking is None or booking.status not in sources:
                logger.warning(
                    "Skipping %s for booking %s: %s",
                    action,
                    key,
                    "not found" if booking is None else f"status is {booking.status}",
                )
                return None
            previous = booking.status
            upd = (
                sa_update(Booking)
                .where(Booking.id == booking.id)
                .where(Booking.status.in_(sources))
                .values(status=target, updated_at=now, **values)
                .execution_options(synchronize_session=False)
            )
            result = await self.db.execute(upd)
            if result.rowcount != 1:
                logger.warning("Skipping %s for booking %s: changed concurrently", action, key)
                return None
            if release:
                await self.db.execute(sa_delete(SeatHold).where(SeatHold.booking_id == booking.id))
            await self.db.refresh(booking)
            if after is not None:
                await after(booking)
            await log_audit(
                self.db,
                actor_id=actor.id if actor else None,
                action=action,
                object_type="booking",
                object_id=booking.id,
                detail={"from": previous, "to": target, "reason": values.get("rejection_reason")},
            )
        BOOKING_TRANSITIONS.labels(target=target).inc()
        logger.info("Booking %s moved %s -> %s (%s)", booking.id, previous, target, action)
        return booking
