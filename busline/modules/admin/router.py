from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from busline.auth.deps import admin_user
from busline.db.session import get_session
from busline.models.models import Bus, JourneySession, Region, Route, User
from busline.schemas.booking import AuditEntryOut, BookingOut, PassengerOut, RejectRequest, SeatMapOut, SweepResult, TransitionOut
from busline.schemas.catalog import (
    BusIn,
    BusOut,
    BusUpdate,
    Overview,
    ReferralIn,
    ReferralOut,
    ReferralStat,
    RegionIn,
    RegionOut,
    RouteIn,
    RouteOut,
    RouteUpdate,
    SessionOut,
    SessionsIn,
    SessionUpdate,
)
from busline.services import reports
from busline.services.audit import audit_trail
from busline.services.catalog import CatalogService
from busline.services.errors import NotFoundError, PermissionDenied, ValidationError
from busline.services.inventory import seat_map
from busline.services.lifecycle import BookingLifecycle
from busline.services.referrals import ReferralService
from busline.services.sweeper import sweep_expired

router = APIRouter(tags=["admin"])


def _transition(booking) -> TransitionOut:
    if booking is None:
        return TransitionOut(changed=False)
    return TransitionOut(changed=True, booking=BookingOut.model_validate(booking))


def _not_found(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _bad_request(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


# Bookings lifecycle
@router.get("/bookings", response_model=List[BookingOut])
async def list_bookings(status: Optional[str] = None, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    return await BookingLifecycle(db).list_bookings(status=status)


@router.post("/bookings/{booking_id}/approve", response_model=TransitionOut)
async def approve_booking(booking_id: str, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    return _transition(await BookingLifecycle(db).approve(booking_id, actor=current_user))


@router.post("/bookings/{booking_id}/unapprove", response_model=TransitionOut)
async def unapprove_booking(booking_id: str, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    return _transition(await BookingLifecycle(db).unapprove(booking_id, actor=current_user))


@router.post("/bookings/{booking_id}/reject", response_model=TransitionOut)
async def reject_booking(booking_id: str, req: RejectRequest, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    return _transition(await BookingLifecycle(db).reject(booking_id, req.reason, actor=current_user))


@router.post("/bookings/{booking_id}/mark-paid", response_model=TransitionOut)
async def mark_paid(booking_id: str, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    """Confirm a booking paid outside the gateway (cash, transfer)."""
    return _transition(await BookingLifecycle(db).confirm_paid_manually(booking_id, actor=current_user))


@router.post("/bookings/{booking_id}/release-seat", response_model=TransitionOut)
async def release_seat(booking_id: str, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    return _transition(await BookingLifecycle(db).release_seat(booking_id, actor=current_user))


@router.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def purge_booking(booking_id: str, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    try:
        deleted = await BookingLifecycle(db).purge(booking_id, actor=current_user)
    except PermissionDenied as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    return None


@router.get("/bookings/{booking_id}/audit", response_model=List[AuditEntryOut])
async def booking_audit(booking_id: str, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    return await audit_trail(db, "booking", booking_id)


@router.get("/passengers", response_model=List[PassengerOut])
async def list_passengers(db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    return await BookingLifecycle(db).list_passengers()


@router.post("/sweep", response_model=SweepResult)
async def sweep(db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    return SweepResult(released=await sweep_expired(db))


# Seat maps
@router.get("/seat-map", response_model=SeatMapOut)
async def journey_seat_map(bus_id: int, route_id: int, date: date, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    try:
        return await seat_map(db, bus_id, route_id, date)
    except NotFoundError as exc:
        raise _not_found(exc)


@router.get("/sessions/{session_id}/seat-map", response_model=SeatMapOut)
async def session_seat_map(session_id: int, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    try:
        session = await CatalogService(db).get_session(session_id)
        return await seat_map(db, session.bus_id, session.route_id, session.departure_date)
    except NotFoundError as exc:
        raise _not_found(exc)


# Catalog management
@router.post("/regions", response_model=RegionOut, status_code=status.HTTP_201_CREATED)
async def create_region(req: RegionIn, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    try:
        return await CatalogService(db).create_region(req.name, actor_id=current_user.id)
    except ValidationError as exc:
        raise _bad_request(exc)


@router.put("/regions/{region_id}", response_model=RegionOut)
async def update_region(region_id: int, req: RegionIn, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    try:
        return await CatalogService(db).update_region(region_id, req.name, actor_id=current_user.id)
    except NotFoundError as exc:
        raise _not_found(exc)
    except ValidationError as exc:
        raise _bad_request(exc)


@router.delete("/regions/{region_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_region(region_id: int, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    if not await CatalogService(db).delete(Region, region_id, actor_id=current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Region not found")


@router.get("/routes", response_model=List[RouteOut])
async def list_all_routes(db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    return await CatalogService(db).list_routes(active_only=False)


@router.get("/buses", response_model=List[BusOut])
async def list_all_buses(db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    return await CatalogService(db).list_buses(active_only=False)


@router.post("/routes", response_model=RouteOut, status_code=status.HTTP_201_CREATED)
async def create_route(req: RouteIn, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    try:
        return await CatalogService(db).create_route(req.pickup, req.destination, req.price, region_id=req.region_id, active=req.active, actor_id=current_user.id)
    except ValidationError as exc:
        raise _bad_request(exc)


@router.patch("/routes/{route_id}", response_model=RouteOut)
async def update_route(route_id: int, req: RouteUpdate, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    try:
        return await CatalogService(db).update_route(route_id, actor_id=current_user.id, **req.model_dump(exclude_unset=True))
    except NotFoundError as exc:
        raise _not_found(exc)
    except ValidationError as exc:
        raise _bad_request(exc)


@router.delete("/routes/{route_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_route(route_id: int, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    if not await CatalogService(db).delete(Route, route_id, actor_id=current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Route not found")


@router.post("/buses", response_model=BusOut, status_code=status.HTTP_201_CREATED)
async def create_bus(req: BusIn, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    try:
        return await CatalogService(db).create_bus(req.number_plate, req.capacity, active=req.active, actor_id=current_user.id)
    except ValidationError as exc:
        raise _bad_request(exc)


@router.patch("/buses/{bus_id}", response_model=BusOut)
async def update_bus(bus_id: int, req: BusUpdate, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    try:
        return await CatalogService(db).update_bus(bus_id, actor_id=current_user.id, **req.model_dump(exclude_unset=True))
    except NotFoundError as exc:
        raise _not_found(exc)
    except ValidationError as exc:
        raise _bad_request(exc)


@router.delete("/buses/{bus_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bus(bus_id: int, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    if not await CatalogService(db).delete(Bus, bus_id, actor_id=current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bus not found")


@router.post("/sessions", response_model=List[SessionOut], status_code=status.HTTP_201_CREATED)
async def create_sessions(req: SessionsIn, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    try:
        return await CatalogService(db).create_sessions(req.name, req.route_ids, req.bus_ids, req.departure_dates, actor_id=current_user.id)
    except ValidationError as exc:
        raise _bad_request(exc)


@router.patch("/sessions/{session_id}", response_model=SessionOut)
async def update_session(session_id: int, req: SessionUpdate, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    try:
        return await CatalogService(db).update_session(session_id, actor_id=current_user.id, **req.model_dump(exclude_unset=True, exclude_none=True))
    except NotFoundError as exc:
        raise _not_found(exc)
    except ValidationError as exc:
        raise _bad_request(exc)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: int, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    if not await CatalogService(db).delete(JourneySession, session_id, actor_id=current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")


# Referrals
@router.get("/referrals", response_model=List[ReferralOut])
async def list_referrals(db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    return await ReferralService(db).list_referrals()


@router.post("/referrals", response_model=ReferralOut, status_code=status.HTTP_201_CREATED)
async def create_referral(req: ReferralIn, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    try:
        return await ReferralService(db).save(req.name, req.phone, actor_id=current_user.id)
    except ValidationError as exc:
        raise _bad_request(exc)


@router.put("/referrals/{referral_id}", response_model=ReferralOut)
async def update_referral(referral_id: int, req: ReferralIn, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    try:
        return await ReferralService(db).save(req.name, req.phone, referral_id=referral_id, actor_id=current_user.id)
    except NotFoundError as exc:
        raise _not_found(exc)
    except ValidationError as exc:
        raise _bad_request(exc)


@router.delete("/referrals/{referral_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_referral(referral_id: int, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    if not await ReferralService(db).delete(referral_id, actor_id=current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Referral not found")


@router.get("/referrals/analytics", response_model=List[ReferralStat])
async def referral_analytics(db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    return await ReferralService(db).analytics()


@router.get("/referrals/{referral_id}/passengers", response_model=List[str])
async def referred_passengers(referral_id: int, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    return await ReferralService(db).referred_passengers(referral_id)


# Reports
@router.get("/reports/overview", response_model=Overview)
async def overview(year: Optional[int] = None, db: AsyncSession = Depends(get_session), current_user: User = Depends(admin_user)):
    return await reports.overview(db, year=year)
