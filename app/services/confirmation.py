"""Payment confirmation.

Gateways deliver at least once, so ``confirm`` is a guarded state transition:
side effects run only when this call flipped ``is_paid`` from false to true.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select as sa_select
from sqlalchemy import update as sa_update
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from app.metrics import BOOKINGS_CONFIRMED
from app.models.models import Booking
from app.services.clock import utcnow
from app.services.errors import BookingNotFound, SessionNotFound
from app.services.loyalty import credit_points
from app.services.notification_service import NotificationService, notification_service

logger = logging.getLogger(__name__)


@dataclass
class ConfirmResult:
    booking_id: int
    transitioned: bool
    points_earned: Optional[int] = None
    email_sent: bool = False


async def _resolve_booking_id(session_factory: async_sessionmaker, session_id: Optional[str], booking_id: Optional[int]) -> int:
    if booking_id is not None:
        return booking_id
    if session_id:
        async with session_factory() as db:
            res = await db.execute(sa_select(Booking.id).where(Booking.payment_session_id == session_id))
            found = res.scalar_one_or_none()
        if found is not None:
            return found
    raise SessionNotFound()


async def confirm(
    session_factory: async_sessionmaker,
    session_id: Optional[str] = None,
    booking_id: Optional[int] = None,
    notifier: Optional[NotificationService] = None,
) -> ConfirmResult:
    booking_id = await _resolve_booking_id(session_factory, session_id, booking_id)

    async with session_factory() as db, db.begin():
        res = await db.execute(
            sa_update(Booking)
            .where(Booking.id == booking_id, Booking.is_paid.is_(False))
            .values(is_paid=True, payment_link=None, paid_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        transitioned = res.rowcount == 1
        if not transitioned:
            exists = await db.execute(sa_select(Booking.id).where(Booking.id == booking_id))
            if exists.scalar_one_or_none() is None:
                raise BookingNotFound()

    if not transitioned:
        logger.info("Duplicate confirmation for booking %s ignored", booking_id)
        return ConfirmResult(booking_id=booking_id, transitioned=False)

    BOOKINGS_CONFIRMED.inc()
    logger.info("Booking %s paid", booking_id)
    result = ConfirmResult(booking_id=booking_id, transitioned=True)
    result.points_earned = await _credit_loyalty(session_factory, booking_id)
    result.email_sent = await _send_confirmation(session_factory, booking_id, notifier or notification_service)
    return result


async def _credit_loyalty(session_factory: async_sessionmaker, booking_id: int) -> Optional[int]:
    try:
        async with session_factory() as db, db.begin():
            booking = await db.get(Booking, booking_id)
            if booking is None or not booking.user_id:
                return None
            return await credit_points(db, booking.user_id, booking.amount)
    except Exception:
        logger.exception("Loyalty credit failed for booking %s", booking_id)
        return None


async def _send_confirmation(session_factory: async_sessionmaker, booking_id: int, notifier: NotificationService) -> bool:
    try:
        async with session_factory() as db:
            res = await db.execute(
                sa_select(Booking)
                .where(Booking.id == booking_id)
                .options(selectinload(Booking.show), selectinload(Booking.user))
            )
            booking = res.scalars().first()
        if booking is None or booking.user is None:
            return False
        await notifier.send_booking_confirmation(booking)
        return True
    except Exception:
        logger.exception("Confirmation email failed for booking %s", booking_id)
        return False
