from .models import *

__all__ = [
    "Base",
    "User",
    "Show",
    "SeatClaim",
    "Booking",
    "PaymentLink",
    "Coupon",
    "AuditLog",
]
