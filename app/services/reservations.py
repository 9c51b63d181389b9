"""Direct seat reservation: claim seats, create the pending booking, schedule
its expiry and open a checkout session."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select as sa_select
from sqlalchemy import update as sa_update
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from app.config import settings
from app.metrics import BOOKINGS_CREATED, PAYMENT_FAILURE
from app.models.models import Booking, PaymentLink, User
from app.services.clock import utcnow
from app.services.errors import BookingNotFound, HoldExpired, PaymentGatewayError, ShowClosed
from app.services.inventory import claim_seats, get_show, show_guard, validate_seats
from app.services.loyalty import quote
from app.services.payment_gateway import BaseAdapter, CheckoutSession, PaymentError
from app.services.scheduler import HoldScheduler, schedule_expiry_safely

logger = logging.getLogger(__name__)


@dataclass
class ReservationResult:
    booking_id: int
    seats: List[str]
    amount: Decimal
    discount_amount: Decimal
    coupon_code: Optional[str]
    expires_at: datetime
    checkout_url: Optional[str] = None


def hold_window() -> timedelta:
    return timedelta(minutes=settings.HOLD_WINDOW_MINUTES)


async def open_checkout(
    session_factory: async_sessionmaker,
    adapter: BaseAdapter,
    booking_id: int,
    amount: Decimal,
    title: str,
    origin: Optional[str] = None,
    link_id: Optional[str] = None,
) -> CheckoutSession:
    """Create the gateway session for a committed booking and store its reference.

    A gateway failure leaves the booking pending; its hold expiry reclaims the seats.
    """
    base = (origin or settings.FRONTEND_URL).rstrip("/")
    try:
        checkout = await adapter.create_checkout_session(
            amount=amount,
            title=title,
            success_url=f"{base}/loading/my-bookings",
            cancel_url=f"{base}/my-bookings",
            metadata={"booking_id": booking_id},
        )
    except PaymentError as exc:
        PAYMENT_FAILURE.labels(provider=adapter.provider_name, reason="checkout").inc()
        logger.warning("Checkout session failed for booking %s: %s", booking_id, exc)
        raise PaymentGatewayError() from exc

    async with session_factory() as db, db.begin():
        await db.execute(
            sa_update(Booking)
            .where(Booking.id == booking_id, Booking.is_paid.is_(False))
            .values(payment_link=checkout.url, payment_session_id=checkout.session_id)
        )
        if link_id:
            await db.execute(
                sa_update(PaymentLink).where(PaymentLink.id == link_id).values(payment_session_id=checkout.session_id)
            )
    return checkout


async def reserve(
    session_factory: async_sessionmaker,
    show_id: int,
    seats: List[str],
    user_id: str,
    adapter: BaseAdapter,
    scheduler: HoldScheduler,
    coupon_code: Optional[str] = None,
    origin: Optional[str] = None,
) -> ReservationResult:
    labels = validate_seats(seats)

    async with show_guard(show_id):
        async with session_factory() as db, db.begin():
            show = await get_show(db, show_id, for_update=True)
            now = utcnow()
            if show.start_time <= now:
                raise ShowClosed()
            user = await db.get(User, user_id)
            tier = user.tier if user else "BRONZE"
            q = await quote(db, show.price, len(labels), tier=tier, coupon_code=coupon_code)

            booking = Booking(
                show_id=show.id,
                user_id=user_id,
                seats=labels,
                amount=q.amount,
                discount_amount=q.discount_amount,
                coupon_code=q.coupon_code,
                is_paid=False,
                created_at=now,
                expires_at=now + hold_window(),
            )
            db.add(booking)
            await db.flush()
            await claim_seats(db, show.id, labels, owner=user_id, booking_id=booking.id)
            title = show.movie_title

    BOOKINGS_CREATED.labels(path="direct").inc()
    logger.info("Booking %s holds %s on show %s for %s", booking.id, labels, show_id, user_id)

    result = ReservationResult(
        booking_id=booking.id,
        seats=labels,
        amount=booking.amount,
        discount_amount=booking.discount_amount,
        coupon_code=booking.coupon_code,
        expires_at=booking.expires_at,
    )
    await schedule_expiry_safely(scheduler, booking.id, booking.expires_at)
    checkout = await open_checkout(session_factory, adapter, booking.id, booking.amount, title, origin=origin)
    result.checkout_url = checkout.url
    return result


async def get_booking_for_user(session_factory: async_sessionmaker, booking_id: int, user_id: str) -> Booking:
    """A pending booking that no longer exists was reclaimed by hold expiry."""
    async with session_factory() as db:
        res = await db.execute(sa_select(Booking).where(Booking.id == booking_id).options(selectinload(Booking.show)))
        booking = res.scalars().first()
    if booking is None:
        raise HoldExpired()
    if booking.user_id != user_id:
        raise BookingNotFound()
    return booking
