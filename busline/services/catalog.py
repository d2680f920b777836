"""Journey catalog: regions, routes, buses and scheduled sessions."""
import logging
from datetime import date
from decimal import Decimal
from itertools import product
from typing import Iterable, List, Optional

from sqlalchemy import select as sa_select, delete as sa_delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from busline.models.models import Bus, JourneySession, Region, Route, SeatHold
from busline.services.audit import log_audit
from busline.services.errors import NotFoundError, ValidationError, transaction

logger = logging.getLogger(__name__)


class CatalogService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # reads

    async def list_regions(self) -> List[Region]:
        async with transaction(self.db):
            res = await self.db.execute(sa_select(Region).order_by(Region.name))
            return list(res.scalars().all())

    async def list_active_routes(self, region_id: Optional[int] = None) -> List[Route]:
        return await self.list_routes(region_id=region_id)

    async def list_routes(self, region_id: Optional[int] = None, active_only: bool = True) -> List[Route]:
        stmt = sa_select(Route)
        if active_only:
            stmt = stmt.where(Route.active.is_(True))
        if region_id is not None:
            stmt = stmt.where(Route.region_id == region_id)
        async with transaction(self.db):
            res = await self.db.execute(stmt.order_by(Route.pickup, Route.destination))
            return list(res.scalars().all())

    async def list_active_buses(self) -> List[Bus]:
        return await self.list_buses()

    async def list_buses(self, active_only: bool = True) -> List[Bus]:
        stmt = sa_select(Bus)
        if active_only:
            stmt = stmt.where(Bus.active.is_(True))
        async with transaction(self.db):
            res = await self.db.execute(stmt.order_by(Bus.number_plate))
            return list(res.scalars().all())

    async def list_sessions(self, route_id: Optional[int] = None) -> List[JourneySession]:
        stmt = sa_select(JourneySession)
        if route_id is not None:
            stmt = stmt.where(JourneySession.route_id == route_id)
        async with transaction(self.db):
            res = await self.db.execute(stmt.order_by(JourneySession.departure_date))
            return list(res.scalars().all())

    async def get_route(self, route_id: int) -> Route:
        return await self._get(Route, route_id)

    async def get_bus(self, bus_id: int) -> Bus:
        return await self._get(Bus, bus_id)

    async def get_session(self, session_id: int) -> JourneySession:
        return await self._get(JourneySession, session_id)

    async def _get(self, model, obj_id):
        async with transaction(self.db):
            obj = await self.db.get(model, obj_id)
        if obj is None:
            raise NotFoundError(f"{model.__name__} {obj_id} not found")
        return obj

    # admin CRUD

    async def create_region(self, name: str, actor_id: int = None) -> Region:
        region = Region(name=name)
        try:
            async with transaction(self.db):
                self.db.add(region)
                await self.db.flush()
                await log_audit(self.db, actor_id=actor_id, action="create_region", object_type="region", object_id=str(region.id), detail={"name": name})
        except IntegrityError:
            raise ValidationError(f"Region {name!r} already exists")
        return region

    async def update_region(self, region_id: int, name: str, actor_id: int = None) -> Region:
        try:
            return await self._update(Region, region_id, "update_region", actor_id, {"name": name})
        except IntegrityError:
            raise ValidationError(f"Region {name!r} already exists")

    async def create_route(self, pickup: str, destination: str, price: Decimal, region_id: Optional[int] = None, active: bool = True, actor_id: int = None) -> Route:
        if price is None or Decimal(price) <= 0:
            raise ValidationError("Route price must be positive")
        route = Route(pickup=pickup, destination=destination, price=price, region_id=region_id, active=active)
        async with transaction(self.db):
            self.db.add(route)
            await self.db.flush()
            await log_audit(self.db, actor_id=actor_id, action="create_route", object_type="route", object_id=str(route.id), detail={"pickup": pickup, "destination": destination, "price": price})
        return route

    async def update_route(self, route_id: int, actor_id: int = None, **fields) -> Route:
        if "price" in fields and (fields["price"] is None or Decimal(fields["price"]) <= 0):
            raise ValidationError("Route price must be positive")
        # bookings keep the fare they were created with
        return await self._update(Route, route_id, "update_route", actor_id, fields)

    async def create_bus(self, number_plate: str, capacity: int, active: bool = True, actor_id: int = None) -> Bus:
        if capacity is None or capacity < 1:
            raise ValidationError("Bus capacity must be a positive integer")
        bus = Bus(number_plate=number_plate, capacity=capacity, active=active)
        try:
            async with transaction(self.db):
                self.db.add(bus)
                await self.db.flush()
                await log_audit(self.db, actor_id=actor_id, action="create_bus", object_type="bus", object_id=number_plate, detail={"capacity": capacity})
        except IntegrityError:
            raise ValidationError(f"Bus {number_plate!r} already exists")
        return bus

    async def update_bus(self, bus_id: int, actor_id: int = None, **fields) -> Bus:
        if "capacity" in fields and (fields["capacity"] is None or fields["capacity"] < 1):
            raise ValidationError("Bus capacity must be a positive integer")
        try:
            return await self._update(Bus, bus_id, "update_bus", actor_id, fields, check=self._keeps_held_seats)
        except IntegrityError:
            raise ValidationError(f"Bus {fields.get('number_plate')!r} already exists")

    async def _keeps_held_seats(self, bus: Bus, fields: dict):
        capacity = fields.get("capacity")
        if capacity is None or capacity >= bus.capacity:
            return
        res = await self.db.execute(sa_select(SeatHold.seat_number).where(SeatHold.bus_id == bus.id))
        beyond = sorted({int(s) for s in res.scalars().all() if int(s) > capacity})
        if beyond:
            raise ValidationError(
                f"Seat(s) {', '.join(map(str, beyond))} are held by active bookings; capacity cannot drop below {beyond[-1]}"
            )

    async def create_sessions(self, name: Optional[str], route_ids: Iterable[int], bus_ids: Iterable[int], departure_dates: Iterable[date], actor_id: int = None) -> List[JourneySession]:
        """Schedule every route x bus x date combination in one transaction."""
        combos = list(product(route_ids, bus_ids, departure_dates))
        if not combos:
            raise ValidationError("At least one route, bus and date are required")
        sessions = [JourneySession(name=name, route_id=r, bus_id=b, departure_date=d) for r, b, d in combos]
        try:
            async with transaction(self.db):
                self.db.add_all(sessions)
                await self.db.flush()
                await log_audit(self.db, actor_id=actor_id, action="create_sessions", object_type="session", object_id=None, detail={"count": len(sessions)})
        except IntegrityError:
            raise ValidationError("One or more of these sessions already exist")
        logger.info("Created %d session(s)", len(sessions))
        return sessions

    async def update_session(self, session_id: int, actor_id: int = None, **fields) -> JourneySession:
        """Rename or reschedule a departure; one that holds seats keeps its journey."""
        try:
            return await self._update(JourneySession, session_id, "update_session", actor_id, fields, check=self._unbooked_if_moved)
        except IntegrityError:
            raise ValidationError("A session for this route, bus and date already exists")

    async def _unbooked_if_moved(self, session: JourneySession, fields: dict):
        moved = any(key in fields and fields[key] != getattr(session, key) for key in ("route_id", "bus_id", "departure_date"))
        if not moved:
            return
        stmt = (
            sa_select(SeatHold.id)
            .where(SeatHold.route_id == session.route_id)
            .where(SeatHold.bus_id == session.bus_id)
            .where(SeatHold.journey_date == session.departure_date)
        )
        if (await self.db.execute(stmt)).first() is not None:
            raise ValidationError("Session has active bookings; release them before moving it")

    async def delete(self, model, obj_id: int, actor_id: int = None) -> bool:
        async with transaction(self.db):
            res = await self.db.execute(sa_delete(model).where(model.id == obj_id))
            if res.rowcount:
                await log_audit(self.db, actor_id=actor_id, action=f"delete_{model.__tablename__}", object_type=model.__tablename__, object_id=str(obj_id))
        return bool(res.rowcount)

    async def _update(self, model, obj_id, action, actor_id, fields, check=None):
        async with transaction(self.db):
            obj = await self.db.get(model, obj_id)
            if obj is None:
                raise NotFoundError(f"{model.__name__} {obj_id} not found")
            if check is not None:
                await check(obj, fields)
            for key, value in fields.items():
                setattr(obj, key, value)
            await log_audit(self.db, actor_id=actor_id, action=action, object_type=model.__tablename__, object_id=str(obj_id), detail=fields)
        return obj
