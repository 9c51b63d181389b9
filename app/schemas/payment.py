from pydantic import BaseModel
from typing import Optional


class WebhookAck(BaseModel):
    received: bool
    event_type: Optional[str] = None
    booking_id: Optional[int] = None
    duplicate: bool = False
