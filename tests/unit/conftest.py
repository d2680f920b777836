import os

# settings are read at import time, so the environment goes first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "unit-test-secret"
os.environ["HUBTEL_LIVE_MODE"] = "false"
os.environ["HUBTEL_TEST_CLIENT_ID"] = "test-client"
os.environ["HUBTEL_TEST_SECRET_KEY"] = "test-secret"
os.environ["HUBTEL_TEST_ACCOUNT_ID"] = "2020202"
os.environ["HUBTEL_API_URL"] = "https://payproxy.hubtel.test/items/initiate"
os.environ["PUBLIC_BASE_URL"] = "https://api.busline.test"
os.environ["FRONTEND_URL"] = "https://book.busline.test"

import json
from datetime import date, datetime, timezone
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from busline.db.base import Base
from busline.db.session import get_session
from busline.main import app
from busline.models.models import Bus, JourneySession, Region, Route, SeatHold, User, ROLE_ADMIN, ROLE_SUPER_ADMIN
from busline.modules.bookings.router import get_gateway
from busline.services import auth as auth_service
from busline.services.payment_gateway import HubtelGateway

T0 = datetime(2024, 8, 1, 9, 0, tzinfo=timezone.utc)
# departures scheduled for every journey make_journey creates
SCHEDULED_DAYS = (date(2024, 8, 15), date(2024, 8, 16))


class FakeRedis:
    """In-memory stand-in for the few redis commands the auth service uses."""

    def __init__(self):
        self.store = {}

    async def set(self, key, value, ex=None):
        self.store[key] = str(value)

    async def get(self, key):
        return self.store.get(key)

    async def delete(self, key):
        self.store.pop(key, None)

    async def incr(self, key):
        self.store[key] = str(int(self.store.get(key, 0)) + 1)
        return int(self.store[key])

    async def expire(self, key, seconds):
        return True

    async def ping(self):
        return True


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fetch(session_factory):
    """Read a row through a fresh session so the test sees committed state."""

    async def _fetch(model, key):
        async with session_factory() as s:
            async with s.begin():
                return await s.get(model, key)

    return _fetch


@pytest.fixture
def held_seats(session_factory):
    async def _held(booking_id):
        async with session_factory() as s:
            async with s.begin():
                res = await s.execute(sa_select(SeatHold.seat_number).where(SeatHold.booking_id == booking_id))
                return sorted(res.scalars().all(), key=int)

    return _held


@pytest.fixture
def make_journey(session_factory):
    async def _make(price="75.00", capacity=50, plate="GT-1234-24", pickup="Accra", destination="Kumasi", active=True, days=SCHEDULED_DAYS):
        async with session_factory() as s:
            async with s.begin():
                region = (await s.execute(sa_select(Region).where(Region.name == "Greater Accra"))).scalars().first()
                if region is None:
                    region = Region(name="Greater Accra")
                    s.add(region)
                    await s.flush()
                route = Route(
                    region_id=region.id,
                    pickup=pickup,
                    destination=destination,
                    price=Decimal(price) if price is not None else None,
                    active=active,
                )
                bus = Bus(number_plate=plate, capacity=capacity, active=True)
                s.add_all([route, bus])
                await s.flush()
                s.add_all([JourneySession(route_id=route.id, bus_id=bus.id, departure_date=d) for d in days])
        return route, bus

    return _make


@pytest.fixture
async def admins(session_factory):
    async with session_factory() as s:
        async with s.begin():
            admin = User(email="ops@busline.test", full_name="Ops Desk", role=ROLE_ADMIN, hashed_password="x")
            super_admin = User(email="owner@busline.test", full_name="Owner", role=ROLE_SUPER_ADMIN, hashed_password="x")
            s.add_all([admin, super_admin])
    return admin, super_admin


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {auth_service.create_access_token(user.id, user.role)}"}

    return _headers


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(auth_service, "redis_client", fake)
    return fake


def hubtel_ok(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(
        200,
        json={
            "responseCode": "0000",
            "status": "Success",
            "data": {
                "checkoutUrl": f"https://pay.hubtel.test/{body['clientReference']}",
                "clientReference": body["clientReference"],
            },
        },
    )


@pytest.fixture
def gateway_handler():
    """Mutable holder so a test can swap the gateway's response."""
    return {"handler": hubtel_ok, "requests": []}


@pytest.fixture
async def client(session_factory, gateway_handler, fake_redis):
    async def _session():
        async with session_factory() as session:
            yield session

    def _handler(request):
        gateway_handler["requests"].append(request)
        return gateway_handler["handler"](request)

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_gateway] = lambda: HubtelGateway(transport=httpx.MockTransport(_handler))
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()


def success_callback(client_reference, amount="100.00", checkout_id="chk_001"):
    return {
        "ResponseCode": "0000",
        "Status": "Success",
        "Data": {
            "CheckoutId": checkout_id,
            "SalesInvoiceId": "inv_001",
            "ClientReference": client_reference,
            "Status": "Success",
            "Amount": amount,
            "CustomerPhoneNumber": "233244000000",
        },
    }


def failed_callback(client_reference, status="Failed"):
    return {
        "ResponseCode": "2001",
        "Status": status,
        "Data": {
            "CheckoutId": "chk_002",
            "ClientReference": client_reference,
            "Status": "Unpaid",
            "Amount": "0",
        },
    }


@pytest.fixture
def success_payload():
    return success_callback


@pytest.fixture
def failed_payload():
    return failed_callback
