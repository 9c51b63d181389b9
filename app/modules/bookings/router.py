import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.auth.deps import get_current_user
from app.db.session import get_session, get_session_factory
from app.models.models import User
from app.schemas.booking import BookingStatusResponse, OccupiedSeatsResponse, ReserveRequest, ReserveResponse
from app.services.clock import utcnow
from app.services.errors import ReservationError
from app.services.inventory import get_show, occupied_seats
from app.services.payment_gateway import BaseAdapter, get_payment_adapter
from app.services.reservations import get_booking_for_user, reserve
from app.services.scheduler import HoldScheduler, get_scheduler
from app.services.tickets import booking_ics

logger = logging.getLogger(__name__)

router = APIRouter()


def _error(exc: ReservationError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@router.post("/", response_model=ReserveResponse)
async def create_booking(
    req: ReserveRequest,
    request: Request,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    adapter: BaseAdapter = Depends(get_payment_adapter),
    scheduler: HoldScheduler = Depends(get_scheduler),
    current_user: User = Depends(get_current_user),
):
    """Hold seats for the current user and open a checkout session."""
    try:
        result = await reserve(
            session_factory,
            show_id=req.show_id,
            seats=req.seats,
            user_id=current_user.id,
            adapter=adapter,
            scheduler=scheduler,
            coupon_code=req.coupon_code,
            origin=request.headers.get("origin"),
        )
    except ReservationError as exc:
        logger.info("Reservation by %s rejected: %s", current_user.id, exc.code)
        return _error(exc)
    return ReserveResponse(
        booking_id=result.booking_id,
        seats=result.seats,
        amount=result.amount,
        discount_amount=result.discount_amount,
        coupon_code=result.coupon_code,
        expires_at=result.expires_at,
        checkout_url=result.checkout_url,
    )


@router.get("/seats/{show_id}", response_model=OccupiedSeatsResponse)
async def show_occupied_seats(show_id: int, db: AsyncSession = Depends(get_session)):
    try:
        await get_show(db, show_id)
    except ReservationError as exc:
        return _error(exc)
    seats = await occupied_seats(db, show_id)
    return OccupiedSeatsResponse(occupied_seats=sorted(seats))


@router.get("/{booking_id}", response_model=BookingStatusResponse)
async def booking_status(
    booking_id: int,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    current_user: User = Depends(get_current_user),
):
    try:
        booking = await get_booking_for_user(session_factory, booking_id, current_user.id)
    except ReservationError as exc:
        return _error(exc)
    remaining = 0
    if not booking.is_paid:
        remaining = max(0, int((booking.expires_at - utcnow()).total_seconds()))
    return BookingStatusResponse(
        booking_id=booking.id,
        show_id=booking.show_id,
        movie_title=booking.show.movie_title,
        start_time=booking.show.start_time,
        seats=list(booking.seats),
        amount=booking.amount,
        discount_amount=booking.discount_amount,
        coupon_code=booking.coupon_code,
        is_paid=booking.is_paid,
        payment_link=booking.payment_link,
        expires_at=booking.expires_at,
        paid_at=booking.paid_at,
        hold_seconds_remaining=remaining,
    )


@router.get("/{booking_id}/ics")
async def booking_ticket(
    booking_id: int,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    current_user: User = Depends(get_current_user),
):
    try:
        booking = await get_booking_for_user(session_factory, booking_id, current_user.id)
    except ReservationError as exc:
        return _error(exc)
    if not booking.is_paid:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Booking is not paid")
    return Response(
        content=booking_ics(booking),
        media_type="text/calendar",
        headers={"Content-Disposition": f'attachment; filename="booking-{booking.id}.ics"'},
    )
