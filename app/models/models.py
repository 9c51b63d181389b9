from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Numeric,
    JSON,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.services.clock import utcnow


LINK_ACTIVE = "active"
LINK_USED = "used"
LINK_EXPIRED = "expired"


class User(Base):
    __tablename__ = "users"
    # identity provider's user id (e.g. "user_2abc...")
    id = Column(String(64), primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    # Role-based access control: Admin, Customer
    role = Column(String(50), nullable=False, default="Customer", index=True)
    points = Column(Integer, nullable=False, default=0)
    tier = Column(String(16), nullable=False, default="BRONZE")
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Show(Base):
    __tablename__ = "shows"
    id = Column(Integer, primary_key=True)
    movie_id = Column(String(64), nullable=False, index=True)
    movie_title = Column(String(255), nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    claims = relationship("SeatClaim", back_populates="show", cascade="all, delete-orphan")


class SeatClaim(Base):
    """One held or booked seat. Absence of a row means the seat is free."""

    __tablename__ = "seat_claims"
    id = Column(Integer, primary_key=True)
    show_id = Column(Integer, ForeignKey("shows.id", ondelete="CASCADE"), nullable=False, index=True)
    seat_label = Column(String(8), nullable=False)
    # user id, or "link:<link id>" while a shareable link holds the seat
    owner = Column(String(96), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=True, index=True)
    link_id = Column(String(32), ForeignKey("payment_links.id", ondelete="SET NULL"), nullable=True, index=True)
    claimed_at = Column(DateTime, default=utcnow, nullable=False)

    show = relationship("Show", back_populates="claims")

    __table_args__ = (UniqueConstraint("show_id", "seat_label", name="uq_show_seat"),)


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(Integer, primary_key=True)
    show_id = Column(Integer, ForeignKey("shows.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    seats = Column(JSON, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    coupon_code = Column(String(64), nullable=True)
    is_paid = Column(Boolean, nullable=False, default=False, index=True)
    payment_link = Column(String(1024), nullable=True)
    payment_session_id = Column(String(255), nullable=True, unique=True)
    expires_at = Column(DateTime, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    show = relationship("Show")
    user = relationship("User")

    __table_args__ = (Index("ix_bookings_unpaid_expiry", "is_paid", "expires_at"),)


class PaymentLink(Base):
    __tablename__ = "payment_links"
    id = Column(String(32), primary_key=True)
    show_id = Column(Integer, ForeignKey("shows.id", ondelete="CASCADE"), nullable=False, index=True)
    seats = Column(JSON, nullable=False)
    created_by = Column(String(64), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(16), nullable=False, default=LINK_ACTIVE)
    expires_at = Column(DateTime, nullable=False)
    used_by = Column(String(64), nullable=True)
    payment_session_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("ix_payment_links_status_expiry", "status", "expires_at"),)

    @property
    def owner_token(self) -> str:
        return f"link:{self.id}"


class Coupon(Base):
    __tablename__ = "coupons"
    id = Column(Integer, primary_key=True)
    code = Column(String(64), nullable=False, unique=True, index=True)
    # percent: value is 0..100, flat: value is a currency amount
    kind = Column(String(16), nullable=False)
    value = Column(Numeric(10, 2), nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    min_amount = Column(Numeric(10, 2), nullable=False, default=0)
    valid_from = Column(DateTime, nullable=True)
    valid_until = Column(DateTime, nullable=True)


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(Integer, primary_key=True)
    actor_id = Column(String(64), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(255), nullable=False)
    object_type = Column(String(128), nullable=True)
    object_id = Column(String(128), nullable=True)
    detail = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
