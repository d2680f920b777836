from contextlib import asynccontextmanager

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession


class BookingError(Exception):
    pass


class ValidationError(BookingError):
    """Malformed booking request; nothing was written."""


class SeatConflict(BookingError):
    def __init__(self, seats):
        self.seats = sorted(seats, key=int)
        super().__init__(f"Seat(s) already taken: {', '.join(self.seats)}")


class NotFoundError(BookingError):
    pass


class PermissionDenied(BookingError):
    pass


class GatewayConfigError(BookingError):
    pass


class GatewayError(BookingError):
    pass


class CallbackError(BookingError):
    pass


class DataAccessError(BookingError):
    pass


@asynccontextmanager
async def transaction(db: AsyncSession):
    """Run the block in one transaction, reporting an unreachable store as DataAccessError."""
    try:
        async with db.begin():
            yield db
    except (OperationalError, InterfaceError) as exc:
        raise DataAccessError("Booking store unavailable") from exc
