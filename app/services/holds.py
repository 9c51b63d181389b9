"""Release of unpaid holds.

``expire_booking`` and the payment confirmation race on the same row. Both
are conditional on ``is_paid = false``: confirmation is an ``UPDATE ... WHERE
is_paid = false`` and expiry a ``DELETE ... WHERE is_paid = false`` in the same
transaction as the seat release, so exactly one of them takes effect.
"""
import enum
import logging
from typing import Dict

from sqlalchemy import delete as sa_delete
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.metrics import HOLDS_RELEASED
from app.models.models import Booking
from app.services.clock import utcnow
from app.services.inventory import release_seats, show_guard
from app.services.payment_links import sweep_expired_links

logger = logging.getLogger(__name__)


class HoldOutcome(str, enum.Enum):
    RELEASED = "released"
    PAID = "paid"
    MISSING = "missing"
    NOT_DUE = "not_due"


class _PaidMeanwhile(Exception):
    pass


async def expire_booking(session_factory: async_sessionmaker, booking_id: int) -> HoldOutcome:
    async with session_factory() as db:
        res = await db.execute(sa_select(Booking.show_id).where(Booking.id == booking_id))
        show_id = res.scalar_one_or_none()
    if show_id is None:
        return HoldOutcome.MISSING

    async with show_guard(show_id):
        try:
            async with session_factory() as db, db.begin():
                res = await db.execute(sa_select(Booking).where(Booking.id == booking_id).with_for_update())
                booking = res.scalars().first()
                if booking is None:
                    return HoldOutcome.MISSING
                if booking.is_paid:
                    return HoldOutcome.PAID
                if booking.expires_at > utcnow():
                    return HoldOutcome.NOT_DUE

                released = await release_seats(db, booking.show_id, list(booking.seats), booking.user_id, booking_id=booking.id)
                deleted = await db.execute(
                    sa_delete(Booking)
                    .where(Booking.id == booking.id, Booking.is_paid.is_(False))
                    .execution_options(synchronize_session=False)
                )
                if deleted.rowcount == 0:
                    # confirmation committed between our read and the delete
                    raise _PaidMeanwhile()
        except _PaidMeanwhile:
            logger.info("Booking %s was paid during expiry; seats kept", booking_id)
            return HoldOutcome.PAID

    HOLDS_RELEASED.labels(reason="booking_expired").inc()
    logger.info("Expired booking %s, released %s seats", booking_id, released)
    return HoldOutcome.RELEASED


async def expire_overdue_bookings(session_factory: async_sessionmaker) -> int:
    """Expire every unpaid booking past its hold window; covers one-shot
    expiry tasks that never ran."""
    async with session_factory() as db:
        res = await db.execute(
            sa_select(Booking.id).where(Booking.is_paid.is_(False), Booking.expires_at <= utcnow())
        )
        overdue = list(res.scalars().all())

    released = 0
    for booking_id in overdue:
        try:
            outcome = await expire_booking(session_factory, booking_id)
        except Exception:
            logger.exception("Error expiring booking %s", booking_id)
            continue
        if outcome == HoldOutcome.RELEASED:
            released += 1
    return released


async def release_expired_holds(session_factory: async_sessionmaker) -> Dict[str, int]:
    links = await sweep_expired_links(session_factory)
    bookings = await expire_overdue_bookings(session_factory)
    if links or bookings:
        logger.info("Hold sweep expired %s links and %s bookings", links, bookings)
    return {"links_expired": links, "bookings_expired": bookings}
