from typing import Dict, List, Optional


class ReservationError(Exception):
    """Expected failure of a reservation operation, answered as a structured
    ``{success: false, code, message}`` response rather than a server error."""

    code = "reservation_error"
    status_code = 400
    default_message = "Reservation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict:
        return {"success": False, "code": self.code, "message": self.message}


class InvalidSeats(ReservationError):
    code = "invalid_seats"
    status_code = 422
    default_message = "Invalid seat selection"


class ShowNotFound(ReservationError):
    code = "show_not_found"
    status_code = 404
    default_message = "Show not found"


class ShowClosed(ReservationError):
    code = "show_closed"
    status_code = 409
    default_message = "This show has already started"


class SeatsUnavailable(ReservationError):
    code = "seats_unavailable"
    status_code = 409
    default_message = "Selected seats are not available. Please choose different seats."

    def __init__(self, taken: Optional[List[str]] = None, message: Optional[str] = None):
        self.taken = sorted(taken or [])
        super().__init__(message)

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data["taken"] = self.taken
        return data


class SeatsNoLongerAvailable(SeatsUnavailable):
    code = "seats_no_longer_available"
    default_message = "Seats are no longer available"


class LinkInvalid(ReservationError):
    code = "link_invalid"
    status_code = 404
    default_message = "Invalid or inactive link"


class LinkExpired(ReservationError):
    code = "link_expired"
    status_code = 410
    default_message = "Link expired"


class BookingNotFound(ReservationError):
    code = "booking_not_found"
    status_code = 404
    default_message = "Booking not found"


class HoldExpired(ReservationError):
    code = "hold_expired"
    status_code = 404
    default_message = "Your seat hold expired. Please reselect seats."


class SessionNotFound(ReservationError):
    code = "session_not_found"
    status_code = 404
    default_message = "No booking matches this payment session"


class PaymentGatewayError(ReservationError):
    code = "payment_gateway_error"
    status_code = 502
    default_message = "Payment provider unavailable. Your seats stay held until the hold expires."
