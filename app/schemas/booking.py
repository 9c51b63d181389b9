from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import datetime


class ReserveRequest(BaseModel):
    show_id: int
    seats: List[str] = Field(..., description="Seat labels such as A1, E7")
    coupon_code: Optional[str] = None


class ReserveResponse(BaseModel):
    success: bool = True
    booking_id: int
    seats: List[str]
    amount: Decimal
    discount_amount: Decimal
    coupon_code: Optional[str] = None
    expires_at: datetime
    checkout_url: Optional[str] = None


class OccupiedSeatsResponse(BaseModel):
    success: bool = True
    occupied_seats: List[str]


class BookingStatusResponse(BaseModel):
    success: bool = True
    booking_id: int
    show_id: int
    movie_title: str
    start_time: datetime
    seats: List[str]
    amount: Decimal
    discount_amount: Decimal
    coupon_code: Optional[str] = None
    is_paid: bool
    payment_link: Optional[str] = None
    expires_at: datetime
    paid_at: Optional[datetime] = None
    hold_seconds_remaining: int = 0
