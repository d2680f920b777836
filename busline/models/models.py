from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    JSON,
    UniqueConstraint,
    Index,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from busline.db.base import Base


# booking statuses
PENDING = "pending"
APPROVED = "approved"
PAID = "paid"
REJECTED = "rejected"

ACTIVE_STATUSES = (PENDING, APPROVED, PAID)
# statuses the seat map shows as taken
HELD_STATUSES = (APPROVED, PAID)

# admin roles
ROLE_ADMIN = "Admin"
ROLE_SUPER_ADMIN = "Super-Admin"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    role = Column(String(50), nullable=False, default=ROLE_ADMIN, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Region(Base):
    __tablename__ = "regions"
    id = Column(Integer, primary_key=True)
    name = Column(String(128), nullable=False, unique=True)

    routes = relationship("Route", back_populates="region")


class Route(Base):
    __tablename__ = "routes"
    id = Column(Integer, primary_key=True)
    region_id = Column(Integer, ForeignKey("regions.id", ondelete="SET NULL"), nullable=True, index=True)
    pickup = Column(String(128), nullable=False, index=True)
    destination = Column(String(128), nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=True)
    active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    region = relationship("Region", back_populates="routes")


class Bus(Base):
    __tablename__ = "buses"
    id = Column(Integer, primary_key=True)
    number_plate = Column(String(64), nullable=False, unique=True, index=True)
    capacity = Column(Integer, nullable=False)
    active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def label(self) -> str:
        return f"{self.number_plate} - {self.capacity} Seater"


class JourneySession(Base):
    """One scheduled departure of a bus on a route."""

    __tablename__ = "sessions"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=True)
    route_id = Column(Integer, ForeignKey("routes.id", ondelete="CASCADE"), nullable=False, index=True)
    bus_id = Column(Integer, ForeignKey("buses.id", ondelete="CASCADE"), nullable=False, index=True)
    departure_date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (UniqueConstraint("route_id", "bus_id", "departure_date", name="uq_session_journey"),)


class Referral(Base):
    __tablename__ = "referrals"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    # the phone number doubles as the referral code
    phone = Column(String(32), nullable=False, unique=True, index=True)


class Passenger(Base):
    __tablename__ = "passengers"
    phone = Column(String(32), primary_key=True)
    name = Column(String(255), nullable=False)
    emergency_contact = Column(String(32), nullable=True)


class Booking(Base):
    __tablename__ = "bookings"
    # id doubles as the client reference sent to the gateway
    id = Column(String(32), primary_key=True)
    client_reference = Column(String(32), nullable=False, unique=True, index=True)
    # passenger snapshot
    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    emergency_contact = Column(String(32), nullable=True)
    # journey
    route_id = Column(Integer, ForeignKey("routes.id", ondelete="SET NULL"), nullable=True, index=True)
    bus_id = Column(Integer, ForeignKey("buses.id", ondelete="SET NULL"), nullable=True, index=True)
    journey_date = Column(Date, nullable=False, index=True)
    pickup = Column(String(128), nullable=False)
    destination = Column(String(128), nullable=False)
    bus_type = Column(String(128), nullable=True)
    # commercial
    seats = Column(JSON, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    referral_id = Column(Integer, ForeignKey("referrals.id", ondelete="SET NULL"), nullable=True, index=True)
    # lifecycle
    status = Column(String(20), nullable=False, default=PENDING, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(255), nullable=True)
    hubtel_transaction_id = Column(String(128), nullable=True)
    payment_status = Column(String(50), nullable=True)
    amount_paid = Column(Numeric(10, 2), nullable=True)
    payment_method = Column(String(32), nullable=True)

    __table_args__ = (Index("ix_booking_journey", "bus_id", "route_id", "journey_date", "status"),)


class SeatHold(Base):
    """A seat claimed by an active booking.

    The unique constraint is what keeps two active bookings off the same seat
    of a journey; rows are removed in the transaction that rejects the booking.
    """

    __tablename__ = "seat_holds"
    id = Column(Integer, primary_key=True)
    booking_id = Column(String(32), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    bus_id = Column(Integer, nullable=False)
    route_id = Column(Integer, nullable=False)
    journey_date = Column(Date, nullable=False)
    seat_number = Column(String(8), nullable=False)

    __table_args__ = (
        UniqueConstraint("bus_id", "route_id", "journey_date", "seat_number", name="uq_journey_seat"),
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(Integer, primary_key=True)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(255), nullable=False)
    object_type = Column(String(128), nullable=True)
    object_id = Column(String(128), nullable=True)
    detail = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
