from prometheus_client import Counter, Histogram

# Payment metrics
PAYMENT_SUCCESS = Counter("busline_payments_success_total", "Successful payments processed", ["method"])
PAYMENT_FAILURE = Counter("busline_payments_failure_total", "Failed or cancelled payments", ["reason"])

# Booking lifecycle metrics
BOOKING_TRANSITIONS = Counter("busline_booking_transitions_total", "Booking status transitions", ["target"])
SEAT_CONFLICTS = Counter("busline_seat_conflicts_total", "Booking attempts rejected because a seat was taken")
SEATS_RELEASED = Counter("busline_expired_reservations_total", "Pending reservations released by the sweeper")

# Seat inventory metrics
INVENTORY_LATENCY = Histogram("busline_inventory_latency_seconds", "Latency for seat inventory resolution")
