"""
Tests for the seat inventory primitives.
"""

import pytest

from app.models.models import Booking, SeatClaim
from app.services.clock import utcnow
from app.services.errors import InvalidSeats, SeatsUnavailable
from app.services.inventory import (
    claim_seats,
    occupied_seats,
    release_seats,
    transfer_seats,
    valid_seat_labels,
    validate_seats,
)


def test_layout_has_ninety_seats():
    labels = valid_seat_labels()
    assert len(labels) == 90
    assert labels[0] == "A1" and labels[-1] == "J9"


def test_validate_normalises_labels():
    assert validate_seats([" e7", "a1"]) == ["E7", "A1"]


@pytest.mark.parametrize("seats", [[], ["A1", "A1"], ["K1"], ["A10"], ["A1", "A2", "A3", "A4", "A5", "A6"]])
def test_validate_rejects_bad_selections(seats):
    with pytest.raises(InvalidSeats):
        validate_seats(seats)


@pytest.mark.asyncio
async def test_claim_then_conflict_reports_taken_seats(session_factory, show):
    async with session_factory() as db, db.begin():
        await claim_seats(db, show.id, ["A1", "A2"], owner="user_alice")

    with pytest.raises(SeatsUnavailable) as exc:
        async with session_factory() as db, db.begin():
            await claim_seats(db, show.id, ["A2", "A3"], owner="user_bob")
    assert exc.value.taken == ["A2"]

    async with session_factory() as db:
        seats = await occupied_seats(db, show.id)
    # the losing claim wrote nothing, not even A3
    assert seats == {"A1": "user_alice", "A2": "user_alice"}


@pytest.mark.asyncio
async def test_claim_lost_to_writer_in_another_process(session_factory, show, monkeypatch):
    with pytest.raises(SeatsUnavailable) as exc:
        async with session_factory() as db, db.begin():
            real_execute = db.execute
            rival_done = []

            async def execute_then_rival_commits(*args, **kwargs):
                result = await real_execute(*args, **kwargs)
                if not rival_done:
                    # bob commits A2 after our availability read, outside our lock
                    async with session_factory() as rival, rival.begin():
                        rival.add(SeatClaim(show_id=show.id, seat_label="A2", owner="user_bob"))
                    rival_done.append(True)
                return result

            monkeypatch.setattr(db, "execute", execute_then_rival_commits)
            await claim_seats(db, show.id, ["A1", "A2"], owner="user_alice")

    # only the seat that was really taken is reported
    assert exc.value.taken == ["A2"]
    async with session_factory() as db:
        assert await occupied_seats(db, show.id) == {"A2": "user_bob"}


@pytest.mark.asyncio
async def test_release_only_removes_seats_of_owner(session_factory, show):
    async with session_factory() as db, db.begin():
        await claim_seats(db, show.id, ["B1"], owner="user_alice")
        await claim_seats(db, show.id, ["B2"], owner="user_bob")

    async with session_factory() as db, db.begin():
        removed = await release_seats(db, show.id, ["B1", "B2"], owner="user_alice")
    assert removed == 1

    async with session_factory() as db:
        assert await occupied_seats(db, show.id) == {"B2": "user_bob"}


@pytest.mark.asyncio
async def test_release_scoped_to_booking(session_factory, show, alice):
    async with session_factory() as db, db.begin():
        booking = Booking(show_id=show.id, user_id=alice.id, seats=["C1"], amount=0, expires_at=utcnow())
        db.add(booking)
        await db.flush()
        await claim_seats(db, show.id, ["C1"], owner=alice.id, booking_id=booking.id)

    async with session_factory() as db, db.begin():
        assert await release_seats(db, show.id, ["C1"], owner=alice.id, booking_id=booking.id + 1) == 0
        assert await release_seats(db, show.id, ["C1"], owner=alice.id, booking_id=booking.id) == 1


@pytest.mark.asyncio
async def test_transfer_moves_only_seats_still_owned(session_factory, show, alice):
    async with session_factory() as db, db.begin():
        await claim_seats(db, show.id, ["D1", "D2"], owner="link:abc")
        await release_seats(db, show.id, ["D2"], owner="link:abc")
        await claim_seats(db, show.id, ["D2"], owner="user_bob")
        booking = Booking(show_id=show.id, user_id=alice.id, seats=["D1", "D2"], amount=0, expires_at=utcnow())
        db.add(booking)
        await db.flush()
        moved = await transfer_seats(db, show.id, ["D1", "D2"], "link:abc", alice.id, booking.id)
    assert moved == 1

    async with session_factory() as db:
        assert await occupied_seats(db, show.id) == {"D1": alice.id, "D2": "user_bob"}
