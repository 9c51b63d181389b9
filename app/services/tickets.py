"""iCalendar tickets for paid bookings."""
from datetime import datetime, timedelta
from uuid import uuid4

from app.config import settings
from app.services.clock import utcnow

SHOW_DURATION = timedelta(hours=2)


def _ics_date(value: datetime) -> str:
    return value.strftime("%Y%m%dT%H%M%SZ")


def _escape(text: str) -> str:
    return str(text).replace("\\", "\\\\").replace("\n", "\\n").replace(",", "\\,").replace(";", "\\;")


def build_ics(title: str, start: datetime, end: datetime = None, description: str = "", location: str = "", organizer: str = None, now: datetime = None) -> str:
    """Single-event VCALENDAR; datetimes are naive UTC."""
    end = end or start + SHOW_DURATION
    now = now or utcnow()
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:-//{settings.APP_NAME}//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{uuid4().hex}@cinema-booking",
        f"DTSTAMP:{_ics_date(now)}",
        f"DTSTART:{_ics_date(start)}",
        f"DTEND:{_ics_date(end)}",
        f"SUMMARY:{_escape(title)}",
    ]
    if description:
        lines.append(f"DESCRIPTION:{_escape(description)}")
    if location:
        lines.append(f"LOCATION:{_escape(location)}")
    lines.append(f"ORGANIZER:mailto:{organizer or settings.SENDER_EMAIL}")
    lines += ["END:VEVENT", "END:VCALENDAR"]
    return "\r\n".join(lines)


def booking_ics(booking) -> str:
    return build_ics(
        title=booking.show.movie_title,
        start=booking.show.start_time,
        description="Your movie booking. Seats: %s" % ", ".join(booking.seats),
        location="Cinema",
    )
