import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from busline.db.session import get_session
from busline.logging_setup import BOOKING_REF_CTX
from busline.schemas.booking import BookingCreate, BookingCreated, BookingOut, InventoryOut
from busline.services.errors import GatewayConfigError, GatewayError, NotFoundError, SeatConflict, ValidationError
from busline.services.inventory import resolve_inventory
from busline.services.lifecycle import BookingLifecycle
from busline.services.payment_gateway import HubtelGateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings"])


def get_gateway() -> HubtelGateway:
    return HubtelGateway()


@router.get("/inventory", response_model=InventoryOut)
async def inventory(bus_id: int, route_id: int, date: date, db: AsyncSession = Depends(get_session)):
    """Occupied and pending seats for one journey."""
    inv = await resolve_inventory(db, bus_id, route_id, date)
    return InventoryOut(
        bus_id=bus_id,
        route_id=route_id,
        date=date,
        occupied=sorted(inv.occupied, key=int),
        pending=sorted(inv.pending, key=int),
        released=inv.released,
    )


@router.post("", response_model=BookingCreated, status_code=status.HTTP_201_CREATED)
async def create_booking(req: BookingCreate, db: AsyncSession = Depends(get_session), gateway: HubtelGateway = Depends(get_gateway)):
    """Reserve the seats and open a checkout session for them.

    If the gateway call fails the pending booking stays in place and is
    released by the sweeper once its payment window lapses.
    """
    lifecycle = BookingLifecycle(db)
    try:
        booking = await lifecycle.create_pending(req)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except SeatConflict as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    BOOKING_REF_CTX.set(booking.client_reference)

    description = f"Bus ticket {booking.pickup} to {booking.destination} ({len(booking.seats)} seat(s))"
    try:
        checkout_url = await gateway.initiate(booking.total_amount, description, booking.client_reference, booking.phone)
    except GatewayConfigError:
        logger.exception("Payment gateway is not configured")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Payments are unavailable right now, please try again later")
    except GatewayError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Payment could not be started: {exc}")

    return BookingCreated(booking=BookingOut.model_validate(booking), checkout_url=checkout_url)


@router.get("/{client_reference}", response_model=BookingOut)
async def get_booking(client_reference: str, db: AsyncSession = Depends(get_session)):
    try:
        return await BookingLifecycle(db).get_by_reference(client_reference)
    except NotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
