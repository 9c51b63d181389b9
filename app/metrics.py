from prometheus_client import Counter, Histogram

# Seat claim metrics
SEAT_CLAIM_LATENCY = Histogram("cinema_seat_claim_latency_seconds", "Latency for seat claim operations")
SEAT_CLAIM_ATTEMPTS = Counter("cinema_seat_claim_attempts_total", "Total seat claim attempts", ["owner_kind", "result"])

# Hold lifecycle
HOLDS_RELEASED = Counter("cinema_holds_released_total", "Seat holds released", ["reason"])
BOOKINGS_CREATED = Counter("cinema_bookings_created_total", "Pending bookings created", ["path"])
BOOKINGS_CONFIRMED = Counter("cinema_bookings_confirmed_total", "Bookings transitioned to paid")

# Payment metrics
PAYMENT_SUCCESS = Counter("cinema_payments_success_total", "Successful payments processed", ["provider"])
PAYMENT_FAILURE = Counter("cinema_payments_failure_total", "Failed payment gateway calls or webhooks", ["provider", "reason"])


def owner_kind(owner: str) -> str:
    return "link" if owner.startswith("link:") else "user"
