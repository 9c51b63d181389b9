import asyncio
import hmac
import hashlib
import json
import time
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
from typing import Dict, Optional
from uuid import uuid4

import stripe

from app.config import settings
from app.redis_client import redis_client


class PaymentError(Exception):
    pass


class WebhookSignatureError(PaymentError):
    pass


@dataclass
class CheckoutSession:
    session_id: str
    url: Optional[str]


@dataclass
class PaymentEvent:
    event_id: str
    type: str
    session_id: Optional[str] = None
    booking_id: Optional[int] = None
    payment_intent: Optional[str] = None


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_DOWN))


def _booking_id(value) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def event_from_payload(payload: Dict) -> PaymentEvent:
    """Normalise a Stripe-shaped event ``{id, type, data: {object}}``."""
    obj = (payload.get("data") or {}).get("object") or {}
    event_type = payload.get("type") or ""
    event = PaymentEvent(event_id=str(payload.get("id") or ""), type=event_type)
    if event_type.startswith("checkout.session."):
        event.session_id = obj.get("id")
        event.booking_id = _booking_id((obj.get("metadata") or {}).get("booking_id"))
        event.payment_intent = obj.get("payment_intent")
    elif event_type.startswith("payment_intent."):
        event.payment_intent = obj.get("id")
    return event


class BaseAdapter:
    provider_name: str = "base"

    async def create_checkout_session(self, amount: Decimal, title: str, success_url: str, cancel_url: str, metadata: Dict) -> CheckoutSession:
        raise NotImplementedError()

    async def parse_webhook(self, headers: Dict[str, str], body: bytes) -> PaymentEvent:
        if not await self.verify_signature(headers, body):
            raise WebhookSignatureError("Invalid signature")
        try:
            payload = json.loads(body)
        except ValueError:
            raise WebhookSignatureError("Malformed payload")
        return event_from_payload(payload)

    async def session_for_payment_intent(self, payment_intent: str) -> Optional[PaymentEvent]:
        return None

    async def verify_signature(self, headers: Dict[str, str], body: bytes) -> bool:
        # default: HMAC-SHA256 using provider secret configured in settings
        secret = self.get_secret()
        if not secret:
            return False
        sig_header = headers.get("x-signature") or ""
        computed = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(computed, sig_header)

    def get_secret(self) -> Optional[str]:
        return ""


class StripeAdapter(BaseAdapter):
    provider_name = "stripe"

    def get_secret(self) -> Optional[str]:
        return settings.STRIPE_WEBHOOK_SECRET

    async def create_checkout_session(self, amount: Decimal, title: str, success_url: str, cancel_url: str, metadata: Dict) -> CheckoutSession:
        line_items = [{
            "price_data": {
                "currency": settings.PAYMENT_CURRENCY,
                "product_data": {"name": title},
                "unit_amount": to_minor_units(amount),
            },
            "quantity": 1,
        }]
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=settings.STRIPE_SECRET_KEY,
                success_url=success_url,
                cancel_url=cancel_url,
                line_items=line_items,
                mode="payment",
                metadata={k: str(v) for k, v in metadata.items()},
                expires_at=int(time.time()) + settings.CHECKOUT_SESSION_TTL_MINUTES * 60,
            )
        except stripe.StripeError as exc:
            raise PaymentError(str(exc)) from exc
        return CheckoutSession(session_id=session.id, url=session.url)

    async def verify_signature(self, headers: Dict[str, str], body: bytes) -> bool:
        secret = self.get_secret()
        sig_header = headers.get("stripe-signature")
        if not secret or not sig_header:
            return False
        try:
            stripe.WebhookSignature.verify_header(body.decode("utf-8"), sig_header, secret, stripe.Webhook.DEFAULT_TOLERANCE)
        except (stripe.SignatureVerificationError, UnicodeDecodeError):
            return False
        return True

    async def session_for_payment_intent(self, payment_intent: str) -> Optional[PaymentEvent]:
        try:
            sessions = await asyncio.to_thread(
                stripe.checkout.Session.list,
                api_key=settings.STRIPE_SECRET_KEY,
                payment_intent=payment_intent,
                limit=1,
            )
        except stripe.StripeError as exc:
            raise PaymentError(str(exc)) from exc
        if not sessions.data:
            return None
        session = sessions.data[0]
        metadata = getattr(session, "metadata", None)
        booking_id = getattr(metadata, "booking_id", None) if metadata else None
        return PaymentEvent(
            event_id=payment_intent,
            type="checkout.session.completed",
            session_id=session.id,
            booking_id=_booking_id(booking_id),
            payment_intent=payment_intent,
        )


class SimulatedAdapter(BaseAdapter):
    """Local provider: checkout URLs point at the frontend and webhooks are
    HMAC-signed with SIMULATED_WEBHOOK_SECRET."""

    provider_name = "simulated"

    def get_secret(self) -> Optional[str]:
        return settings.SIMULATED_WEBHOOK_SECRET

    async def create_checkout_session(self, amount: Decimal, title: str, success_url: str, cancel_url: str, metadata: Dict) -> CheckoutSession:
        session_id = f"cs_sim_{uuid4().hex}"
        checkout_url = f"{settings.FRONTEND_URL}/simulated-checkout/{session_id}?amount={to_minor_units(amount)}"
        return CheckoutSession(session_id=session_id, url=checkout_url)


ADAPTERS = {
    "stripe": StripeAdapter(),
    "simulated": SimulatedAdapter(),
}


async def get_adapter(name: str) -> BaseAdapter:
    ad = ADAPTERS.get(name.lower())
    if not ad:
        raise PaymentError(f"Unknown provider: {name}")
    return ad


async def get_payment_adapter() -> BaseAdapter:
    """Dependency: the adapter configured for outgoing checkout sessions."""
    return await get_adapter(settings.PAYMENT_PROVIDER)


IDEMPOTENCY_KEY_TPL = "payment_webhook:{provider}:{event_id}"


async def mark_event_processed(provider: str, event_id: str, ttl: int = 60 * 60 * 24) -> bool:
    key = IDEMPOTENCY_KEY_TPL.format(provider=provider, event_id=event_id)
    # set NX to ensure we only record once
    added = await redis_client.set(key, "1", ex=ttl, nx=True)
    return bool(added)


async def is_event_processed(provider: str, event_id: str) -> bool:
    key = IDEMPOTENCY_KEY_TPL.format(provider=provider, event_id=event_id)
    return bool(await redis_client.exists(key))
