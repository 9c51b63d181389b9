"""
Tests for hold expiry: one-shot booking expiry, the periodic sweep and the
race against payment confirmation.
"""

from unittest.mock import patch

import pytest

import app.services.holds as holds_module
from app.models.models import Booking
from app.services.confirmation import confirm
from app.services.holds import HoldOutcome, expire_booking, expire_overdue_bookings, release_expired_holds
from app.services.inventory import occupied_seats
from app.services.payment_links import create_link
from app.services.reservations import reserve
from conftest import make_link_overdue, make_overdue


@pytest.mark.asyncio
async def test_unpaid_hold_is_released_after_window(session_factory, show, alice, bob, adapter, scheduler):
    result = await reserve(session_factory, show.id, ["A1", "A2"], alice.id, adapter, scheduler)
    await make_overdue(session_factory, result.booking_id)

    assert await expire_booking(session_factory, result.booking_id) == HoldOutcome.RELEASED

    async with session_factory() as db:
        assert await db.get(Booking, result.booking_id) is None
        assert await occupied_seats(db, show.id) == {}

    # the seats are free for someone else
    again = await reserve(session_factory, show.id, ["A1", "A2"], bob.id, adapter, scheduler)
    assert again.seats == ["A1", "A2"]


@pytest.mark.asyncio
async def test_expiry_before_deadline_is_a_no_op(session_factory, show, alice, adapter, scheduler):
    result = await reserve(session_factory, show.id, ["B1"], alice.id, adapter, scheduler)
    assert await expire_booking(session_factory, result.booking_id) == HoldOutcome.NOT_DUE
    async with session_factory() as db:
        assert await occupied_seats(db, show.id) == {"B1": alice.id}


@pytest.mark.asyncio
async def test_paid_booking_is_never_expired(session_factory, show, alice, adapter, scheduler, notifier):
    result = await reserve(session_factory, show.id, ["C1"], alice.id, adapter, scheduler)
    await confirm(session_factory, booking_id=result.booking_id, notifier=notifier)
    await make_overdue(session_factory, result.booking_id)

    assert await expire_booking(session_factory, result.booking_id) == HoldOutcome.PAID
    async with session_factory() as db:
        assert (await db.get(Booking, result.booking_id)).is_paid is True
        assert await occupied_seats(db, show.id) == {"C1": alice.id}


@pytest.mark.asyncio
async def test_missing_booking(session_factory):
    assert await expire_booking(session_factory, 4242) == HoldOutcome.MISSING


@pytest.mark.asyncio
async def test_payment_landing_mid_expiry_keeps_seats(session_factory, show, alice, adapter, scheduler, notifier):
    """Confirmation commits after the expiry read the booking as unpaid."""
    result = await reserve(session_factory, show.id, ["D1"], alice.id, adapter, scheduler)
    await make_overdue(session_factory, result.booking_id)

    real_release = holds_module.release_seats

    async def pay_then_release(db, *args, **kwargs):
        await confirm(session_factory, booking_id=result.booking_id, notifier=notifier)
        return await real_release(db, *args, **kwargs)

    with patch.object(holds_module, "release_seats", pay_then_release):
        outcome = await expire_booking(session_factory, result.booking_id)

    assert outcome == HoldOutcome.PAID
    async with session_factory() as db:
        # the seat release was rolled back with the rest of the expiry
        assert await occupied_seats(db, show.id) == {"D1": alice.id}
        assert (await db.get(Booking, result.booking_id)).is_paid is True


@pytest.mark.asyncio
async def test_overdue_sweep_covers_lost_tasks(session_factory, show, alice, bob, adapter, scheduler):
    first = await reserve(session_factory, show.id, ["E1"], alice.id, adapter, scheduler)
    second = await reserve(session_factory, show.id, ["E2"], bob.id, adapter, scheduler)
    await make_overdue(session_factory, first.booking_id)

    assert await expire_overdue_bookings(session_factory) == 1
    async with session_factory() as db:
        assert await occupied_seats(db, show.id) == {"E2": bob.id}
        assert await db.get(Booking, second.booking_id) is not None


@pytest.mark.asyncio
async def test_release_expired_holds_sweeps_links_and_bookings(session_factory, show, alice, bob, adapter, scheduler):
    link = await create_link(session_factory, show.id, ["F1", "F2"], alice.id)
    result = await reserve(session_factory, show.id, ["F3"], bob.id, adapter, scheduler)
    await make_link_overdue(session_factory, link.id)
    await make_overdue(session_factory, result.booking_id)

    summary = await release_expired_holds(session_factory)

    assert summary == {"links_expired": 1, "bookings_expired": 1}
    async with session_factory() as db:
        assert await occupied_seats(db, show.id) == {}
