from .models import *

__all__ = [
    "Base",
    "User",
    "Region",
    "Route",
    "Bus",
    "JourneySession",
    "Referral",
    "Passenger",
    "Booking",
    "SeatHold",
    "AuditLog",
]
