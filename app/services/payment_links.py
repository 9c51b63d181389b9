"""Shareable payment links: seats held under a ``link:<id>`` owner token that
any signed-in user may consume once before the link expires."""
import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import select as sa_select
from sqlalchemy import update as sa_update
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.config import settings
from app.metrics import BOOKINGS_CREATED, HOLDS_RELEASED
from app.models.models import LINK_ACTIVE, LINK_EXPIRED, LINK_USED, Booking, PaymentLink
from app.services.clock import utcnow
from app.services.errors import LinkExpired, LinkInvalid, SeatsNoLongerAvailable, ShowClosed
from app.services.inventory import claim_seats, get_show, release_seats, show_guard, transfer_seats, validate_seats
from app.services.payment_gateway import BaseAdapter
from app.services.reservations import hold_window, open_checkout
from app.services.scheduler import HoldScheduler, schedule_expiry_safely

logger = logging.getLogger(__name__)


@dataclass
class LinkCheckout:
    booking_id: int
    amount: Decimal
    checkout_url: Optional[str]


def clamp_expiry(expiry_minutes: Optional[int]) -> int:
    minutes = settings.LINK_DEFAULT_EXPIRY_MINUTES if expiry_minutes is None else int(expiry_minutes)
    return min(settings.LINK_MAX_EXPIRY_MINUTES, max(settings.LINK_MIN_EXPIRY_MINUTES, minutes))


async def create_link(
    session_factory: async_sessionmaker,
    show_id: int,
    seats: List[str],
    creator_id: str,
    expiry_minutes: Optional[int] = None,
) -> PaymentLink:
    labels = validate_seats(seats)
    minutes = clamp_expiry(expiry_minutes)

    async with show_guard(show_id):
        async with session_factory() as db, db.begin():
            show = await get_show(db, show_id, for_update=True)
            now = utcnow()
            if show.start_time <= now:
                raise ShowClosed()
            link = PaymentLink(
                id=uuid4().hex,
                show_id=show.id,
                seats=labels,
                created_by=creator_id,
                status=LINK_ACTIVE,
                created_at=now,
                expires_at=now + timedelta(minutes=minutes),
            )
            db.add(link)
            await db.flush()
            await claim_seats(db, show.id, labels, owner=link.owner_token, link_id=link.id)

    logger.info("Payment link %s holds %s on show %s until %s", link.id, labels, show_id, link.expires_at)
    return link


async def checkout_link(
    session_factory: async_sessionmaker,
    link_id: str,
    user_id: str,
    adapter: BaseAdapter,
    scheduler: HoldScheduler,
    origin: Optional[str] = None,
) -> LinkCheckout:
    async with session_factory() as db:
        res = await db.execute(sa_select(PaymentLink.show_id).where(PaymentLink.id == link_id))
        show_id = res.scalar_one_or_none()
    if show_id is None:
        raise LinkInvalid()

    async with show_guard(show_id):
        async with session_factory() as db, db.begin():
            res = await db.execute(sa_select(PaymentLink).where(PaymentLink.id == link_id).with_for_update())
            link = res.scalars().first()
            if link is None or link.status != LINK_ACTIVE:
                raise LinkInvalid()
            now = utcnow()
            if link.expires_at <= now:
                raise LinkExpired()
            show = await get_show(db, link.show_id)
            if show.start_time <= now:
                raise ShowClosed()
            seats = list(link.seats)

            booking = Booking(
                show_id=show.id,
                user_id=user_id,
                seats=seats,
                amount=Decimal(show.price) * len(seats),
                discount_amount=Decimal("0"),
                is_paid=False,
                created_at=now,
                expires_at=now + hold_window(),
            )
            db.add(booking)
            await db.flush()

            moved = await transfer_seats(db, show.id, seats, link.owner_token, user_id, booking.id)
            if moved != len(seats):
                raise SeatsNoLongerAvailable()
            used = await db.execute(
                sa_update(PaymentLink)
                .where(PaymentLink.id == link.id, PaymentLink.status == LINK_ACTIVE)
                .values(status=LINK_USED, used_by=user_id)
                .execution_options(synchronize_session=False)
            )
            if used.rowcount != 1:
                raise LinkInvalid()
            title = show.movie_title

    BOOKINGS_CREATED.labels(path="link").inc()
    logger.info("Payment link %s consumed by %s as booking %s", link_id, user_id, booking.id)
    await schedule_expiry_safely(scheduler, booking.id, booking.expires_at)
    checkout = await open_checkout(session_factory, adapter, booking.id, booking.amount, title, origin=origin, link_id=link_id)
    return LinkCheckout(booking_id=booking.id, amount=booking.amount, checkout_url=checkout.url)


async def expire_link(session_factory: async_sessionmaker, link_id: str) -> bool:
    async with session_factory() as db:
        res = await db.execute(sa_select(PaymentLink.show_id).where(PaymentLink.id == link_id))
        show_id = res.scalar_one_or_none()
    if show_id is None:
        return False

    async with show_guard(show_id):
        async with session_factory() as db, db.begin():
            res = await db.execute(sa_select(PaymentLink).where(PaymentLink.id == link_id).with_for_update())
            link = res.scalars().first()
            if link is None or link.status != LINK_ACTIVE or link.expires_at > utcnow():
                return False
            changed = await db.execute(
                sa_update(PaymentLink)
                .where(PaymentLink.id == link.id, PaymentLink.status == LINK_ACTIVE)
                .values(status=LINK_EXPIRED)
                .execution_options(synchronize_session=False)
            )
            if changed.rowcount != 1:
                return False
            released = await release_seats(db, link.show_id, list(link.seats), link.owner_token)

    HOLDS_RELEASED.labels(reason="link_expired").inc()
    logger.info("Expired payment link %s, released %s seats", link_id, released)
    return True


async def sweep_expired_links(session_factory: async_sessionmaker) -> int:
    now = utcnow()
    async with session_factory() as db:
        res = await db.execute(
            sa_select(PaymentLink.id).where(PaymentLink.status == LINK_ACTIVE, PaymentLink.expires_at <= now)
        )
        due = list(res.scalars().all())

    expired = 0
    for link_id in due:
        try:
            if await expire_link(session_factory, link_id):
                expired += 1
        except Exception:
            logger.exception("Error expiring payment link %s", link_id)
    return expired
