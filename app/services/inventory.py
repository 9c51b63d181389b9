"""Show inventory: the per-show seat -> owner map stored as ``seat_claims`` rows.

Every writer goes through the conditional primitives below; none of them
performs an unconditional read-then-write on a seat.
"""
import asyncio
import logging
import time
import weakref
from contextlib import asynccontextmanager
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete as sa_delete
from sqlalchemy import select as sa_select
from sqlalchemy import update as sa_update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.metrics import SEAT_CLAIM_ATTEMPTS, SEAT_CLAIM_LATENCY, owner_kind
from app.models.models import SeatClaim, Show
from app.services.errors import InvalidSeats, SeatsUnavailable, ShowNotFound

logger = logging.getLogger(__name__)

_show_locks: "weakref.WeakValueDictionary" = weakref.WeakValueDictionary()


def valid_seat_labels() -> List[str]:
    return [f"{row}{n}" for row in settings.SEAT_ROWS for n in range(1, settings.SEATS_PER_ROW + 1)]


def validate_seats(seats: Iterable[str]) -> List[str]:
    """Normalise labels ("e7" -> "E7") and reject empty, duplicate, unknown or oversized selections."""
    labels = [str(s).strip().upper() for s in (seats or [])]
    if not labels:
        raise InvalidSeats("Select at least one seat")
    if len(labels) > settings.MAX_SEATS_PER_BOOKING:
        raise InvalidSeats(f"You can only select {settings.MAX_SEATS_PER_BOOKING} seats")
    if len(set(labels)) != len(labels):
        raise InvalidSeats("Duplicate seats in selection")
    valid = set(valid_seat_labels())
    unknown = [s for s in labels if s not in valid]
    if unknown:
        raise InvalidSeats("Unknown seats: %s" % ", ".join(unknown))
    return labels


def _lock_for(show_id: int) -> asyncio.Lock:
    key = (id(asyncio.get_running_loop()), show_id)
    lock = _show_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _show_locks[key] = lock
    return lock


@asynccontextmanager
async def show_guard(show_id: int):
    """In-process critical section for one show. Cross-process exclusion comes
    from the row lock taken by ``get_show(..., for_update=True)`` and the
    unique (show_id, seat_label) constraint."""
    lock = _lock_for(show_id)
    async with lock:
        yield


async def get_show(db: AsyncSession, show_id: int, for_update: bool = False) -> Show:
    stmt = sa_select(Show).where(Show.id == show_id)
    if for_update:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    show = res.scalars().first()
    if not show:
        raise ShowNotFound()
    return show


async def occupied_seats(db: AsyncSession, show_id: int) -> Dict[str, str]:
    stmt = sa_select(SeatClaim.seat_label, SeatClaim.owner).where(SeatClaim.show_id == show_id)
    res = await db.execute(stmt)
    return {label: owner for label, owner in res.all()}


async def _committed_conflicts(db: AsyncSession, show_id: int, seats: List[str]) -> List[str]:
    """Seats a rival committed; read outside the failed transaction of ``db``."""
    async with AsyncSession(db.bind) as fresh:
        current = await occupied_seats(fresh, show_id)
    return [label for label in seats if label in current]


async def claim_seats(
    db: AsyncSession,
    show_id: int,
    seats: List[str],
    owner: str,
    booking_id: Optional[int] = None,
    link_id: Optional[str] = None,
) -> List[SeatClaim]:
    """Claim every seat for ``owner`` or none of them.

    Must run inside the caller's transaction; on ``SeatsUnavailable`` the caller
    rolls back, so nothing is written for a losing request.
    """
    start = time.perf_counter()
    kind = owner_kind(owner)
    stmt = sa_select(SeatClaim.seat_label).where(SeatClaim.show_id == show_id, SeatClaim.seat_label.in_(seats))
    res = await db.execute(stmt)
    taken = list(res.scalars().all())
    if taken:
        SEAT_CLAIM_ATTEMPTS.labels(owner_kind=kind, result="conflict").inc()
        logger.info("Seat conflict on show %s: %s", show_id, taken)
        raise SeatsUnavailable(taken=taken)

    claims = [
        SeatClaim(show_id=show_id, seat_label=label, owner=owner, booking_id=booking_id, link_id=link_id)
        for label in seats
    ]
    db.add_all(claims)
    try:
        await db.flush()
    except IntegrityError:
        # a concurrent writer inserted one of these seats after our read
        SEAT_CLAIM_ATTEMPTS.labels(owner_kind=kind, result="conflict").inc()
        taken = await _committed_conflicts(db, show_id, seats)
        logger.info("Seat claim lost to concurrent writer on show %s: %s", show_id, taken)
        raise SeatsUnavailable(taken=taken)
    SEAT_CLAIM_ATTEMPTS.labels(owner_kind=kind, result="success").inc()
    SEAT_CLAIM_LATENCY.observe(time.perf_counter() - start)
    return claims


async def release_seats(
    db: AsyncSession,
    show_id: int,
    seats: List[str],
    owner: str,
    booking_id: Optional[int] = None,
) -> int:
    """Delete-if-equals: only rows still owned by ``owner`` are removed."""
    stmt = sa_delete(SeatClaim).where(
        SeatClaim.show_id == show_id,
        SeatClaim.seat_label.in_(seats),
        SeatClaim.owner == owner,
    )
    if booking_id is not None:
        stmt = stmt.where(SeatClaim.booking_id == booking_id)
    res = await db.execute(stmt.execution_options(synchronize_session=False))
    return res.rowcount


async def transfer_seats(
    db: AsyncSession,
    show_id: int,
    seats: List[str],
    from_owner: str,
    to_owner: str,
    booking_id: int,
) -> int:
    stmt = (
        sa_update(SeatClaim)
        .where(
            SeatClaim.show_id == show_id,
            SeatClaim.seat_label.in_(seats),
            SeatClaim.owner == from_owner,
        )
        .values(owner=to_owner, booking_id=booking_id, link_id=None)
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    return res.rowcount
