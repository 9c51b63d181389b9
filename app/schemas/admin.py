from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from decimal import Decimal
from datetime import datetime


class ShowCreate(BaseModel):
    movie_id: str
    movie_title: str
    start_time: datetime
    price: Decimal = Field(..., ge=0)


class CouponCreate(BaseModel):
    code: str
    kind: str = Field(..., description="percent or flat")
    value: Decimal = Field(..., gt=0)
    active: bool = True
    min_amount: Decimal = Field(Decimal("0"), ge=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def _upper_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("kind")
    @classmethod
    def _known_kind(cls, v: str) -> str:
        if v not in ("percent", "flat"):
            raise ValueError("kind must be 'percent' or 'flat'")
        return v

    @model_validator(mode="after")
    def _percent_at_most_100(self) -> "CouponCreate":
        if self.kind == "percent" and self.value > 100:
            raise ValueError("percent coupons cannot exceed 100")
        return self
