import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.models import Coupon, User
from app.services.clock import utcnow

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

TIER_DISCOUNTS = {"BRONZE": Decimal("0"), "SILVER": Decimal("0.05"), "GOLD": Decimal("0.10"), "PLATINUM": Decimal("0.15")}

# highest first
TIER_THRESHOLDS = [("PLATINUM", 2000), ("GOLD", 1000), ("SILVER", 400), ("BRONZE", 0)]


@dataclass
class Quote:
    base_amount: Decimal
    amount: Decimal
    discount_amount: Decimal
    coupon_code: Optional[str] = None


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


async def find_coupon(db: AsyncSession, code: str) -> Optional[Coupon]:
    stmt = sa_select(Coupon).where(Coupon.code == code, Coupon.active.is_(True))
    res = await db.execute(stmt)
    return res.scalars().first()


def coupon_discount(coupon: Optional[Coupon], amount: Decimal, now=None) -> Decimal:
    """Discount a coupon grants on ``amount``; zero when it does not apply."""
    if coupon is None or not coupon.active:
        return Decimal("0")
    now = now or utcnow()
    if coupon.valid_from and coupon.valid_from > now:
        return Decimal("0")
    if coupon.valid_until and now > coupon.valid_until:
        return Decimal("0")
    if amount < Decimal(coupon.min_amount or 0):
        return Decimal("0")
    value = Decimal(coupon.value)
    if coupon.kind == "percent":
        return max(Decimal("0"), amount * value / Decimal("100"))
    if coupon.kind == "flat":
        return min(amount, value)
    return Decimal("0")


async def quote(db: AsyncSession, price, seat_count: int, tier: str = "BRONZE", coupon_code: Optional[str] = None) -> Quote:
    """Price a selection: seats x price, less the loyalty tier discount, less a
    valid coupon. Unknown or ineligible coupons are ignored."""
    base = Decimal(price) * seat_count
    provisional = max(Decimal("0"), base - base * TIER_DISCOUNTS.get(tier or "BRONZE", Decimal("0")))

    applied_code = None
    coupon_off = Decimal("0")
    if coupon_code:
        code = str(coupon_code).strip().upper()
        coupon = await find_coupon(db, code)
        coupon_off = coupon_discount(coupon, provisional)
        if coupon_off > 0:
            applied_code = code
        else:
            logger.info("Coupon %s not applicable", code)

    amount = _cents(max(Decimal("0"), provisional - coupon_off))
    return Quote(base_amount=_cents(base), amount=amount, discount_amount=_cents(base - amount), coupon_code=applied_code)


def tier_for(points: int) -> str:
    for tier, minimum in TIER_THRESHOLDS:
        if points >= minimum:
            return tier
    return "BRONZE"


def points_for(amount) -> int:
    return max(1, int((Decimal(amount or 0) / 10).quantize(Decimal("1"), rounding=ROUND_HALF_UP)))


async def credit_points(db: AsyncSession, user_id: str, amount) -> Optional[int]:
    """Credit loyalty points for a paid booking and recompute the tier.
    Caller owns the transaction."""
    stmt = sa_select(User).where(User.id == user_id).with_for_update()
    res = await db.execute(stmt)
    user = res.scalars().first()
    if not user:
        logger.warning("Loyalty credit skipped, user %s not found", user_id)
        return None
    earned = points_for(amount)
    user.points = (user.points or 0) + earned
    user.tier = tier_for(user.points)
    return earned
