from pydantic import BaseModel, Field
from typing import List, Optional
from decimal import Decimal
from datetime import datetime


class CreateLinkRequest(BaseModel):
    show_id: int
    seats: List[str]
    expiry_minutes: Optional[int] = Field(None, description="Clamped to the configured link expiry bounds")


class CreateLinkResponse(BaseModel):
    success: bool = True
    link_id: str
    seats: List[str]
    expires_at: datetime


class LinkCheckoutResponse(BaseModel):
    success: bool = True
    booking_id: int
    amount: Decimal
    checkout_url: Optional[str] = None
