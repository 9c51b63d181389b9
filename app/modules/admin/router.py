from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from app.db.session import get_session_factory
from app.auth.deps import role_required
from app.models.models import Show, Coupon, User
from app.schemas.admin import ShowCreate, CouponCreate
from app.services.audit import log_audit

router = APIRouter()


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@router.post("/shows")
async def create_show(req: ShowCreate, request: Request, session_factory: async_sessionmaker = Depends(get_session_factory), current_user: User = Depends(role_required(["Admin"]))):
    show = Show(movie_id=req.movie_id, movie_title=req.movie_title, start_time=_naive_utc(req.start_time), price=req.price)
    async with session_factory() as db, db.begin():
        db.add(show)
        await db.flush()
        await log_audit(db, actor_id=current_user.id, action="create_show", object_type="show", object_id=str(show.id), detail={"movie_id": req.movie_id, "start_time": show.start_time.isoformat()}, request=request)
    return {"success": True, "show_id": show.id, "movie_title": show.movie_title, "start_time": show.start_time}


@router.post("/coupons")
async def create_coupon(req: CouponCreate, request: Request, session_factory: async_sessionmaker = Depends(get_session_factory), current_user: User = Depends(role_required(["Admin"]))):
    coupon = Coupon(
        code=req.code,
        kind=req.kind,
        value=req.value,
        active=req.active,
        min_amount=req.min_amount,
        valid_from=_naive_utc(req.valid_from),
        valid_until=_naive_utc(req.valid_until),
    )
    try:
        async with session_factory() as db, db.begin():
            db.add(coupon)
            await db.flush()
            await log_audit(db, actor_id=current_user.id, action="create_coupon", object_type="coupon", object_id=coupon.code, detail={"kind": req.kind, "value": str(req.value)}, request=request)
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Coupon code already exists")
    return {"success": True, "coupon_id": coupon.id, "code": coupon.code}
