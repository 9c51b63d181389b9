import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.auth.deps import get_current_user
from app.db.session import get_session_factory
from app.models.models import User
from app.schemas.links import CreateLinkRequest, CreateLinkResponse, LinkCheckoutResponse
from app.services.errors import ReservationError
from app.services.payment_gateway import BaseAdapter, get_payment_adapter
from app.services.payment_links import checkout_link, create_link
from app.services.scheduler import HoldScheduler, get_scheduler

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/", response_model=CreateLinkResponse)
async def create_payment_link(
    req: CreateLinkRequest,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    current_user: User = Depends(get_current_user),
):
    """Hold seats under a shareable link that anyone signed in can pay for."""
    try:
        link = await create_link(session_factory, req.show_id, req.seats, current_user.id, expiry_minutes=req.expiry_minutes)
    except ReservationError as exc:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
    return CreateLinkResponse(link_id=link.id, seats=list(link.seats), expires_at=link.expires_at)


@router.post("/{link_id}/checkout", response_model=LinkCheckoutResponse)
async def checkout_payment_link(
    link_id: str,
    request: Request,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    adapter: BaseAdapter = Depends(get_payment_adapter),
    scheduler: HoldScheduler = Depends(get_scheduler),
    current_user: User = Depends(get_current_user),
):
    try:
        result = await checkout_link(
            session_factory,
            link_id,
            current_user.id,
            adapter=adapter,
            scheduler=scheduler,
            origin=request.headers.get("origin"),
        )
    except ReservationError as exc:
        logger.info("Link %s checkout by %s rejected: %s", link_id, current_user.id, exc.code)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
    return LinkCheckoutResponse(booking_id=result.booking_id, amount=result.amount, checkout_url=result.checkout_url)
