import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.db.session import get_session_factory
from app.metrics import PAYMENT_FAILURE, PAYMENT_SUCCESS
from app.schemas.payment import WebhookAck
from app.services.confirmation import confirm
from app.services.errors import BookingNotFound, SessionNotFound
from app.services.payment_gateway import (
    PaymentError,
    WebhookSignatureError,
    get_adapter,
    is_event_processed,
    mark_event_processed,
)

logger = logging.getLogger(__name__)

router = APIRouter()

HANDLED_EVENTS = ("checkout.session.completed", "payment_intent.succeeded")


@router.post("/webhook/{provider}", response_model=WebhookAck)
async def payment_webhook(provider: str, request: Request, session_factory: async_sessionmaker = Depends(get_session_factory)):
    body = await request.body()
    headers = {k.lower(): v for k, v in request.headers.items()}

    try:
        adapter = await get_adapter(provider)
    except PaymentError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown payment provider")

    try:
        event = await adapter.parse_webhook(headers, body)
    except WebhookSignatureError as exc:
        PAYMENT_FAILURE.labels(provider=provider, reason="signature").inc()
        logger.warning("Rejected %s webhook: %s", provider, exc)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    if not event.event_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing event id for idempotency")

    # replay of an event we already processed
    if await is_event_processed(provider, event.event_id):
        return WebhookAck(received=True, event_type=event.type, duplicate=True)

    if event.type not in HANDLED_EVENTS:
        logger.info("Ignoring %s event %s", event.type, event.event_id)
        return WebhookAck(received=True, event_type=event.type)

    if event.type == "payment_intent.succeeded":
        try:
            resolved = await adapter.session_for_payment_intent(event.payment_intent)
        except PaymentError:
            # answered with 5xx so the provider retries the delivery
            PAYMENT_FAILURE.labels(provider=provider, reason="session_lookup").inc()
            logger.exception("Checkout session lookup failed for payment intent %s", event.payment_intent)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Payment provider unavailable")
        if resolved is None:
            logger.warning("No checkout session for payment intent %s", event.payment_intent)
            await mark_event_processed(provider, event.event_id)
            return WebhookAck(received=True, event_type=event.type)
        session_id, booking_id = resolved.session_id, resolved.booking_id
    else:
        session_id, booking_id = event.session_id, event.booking_id

    try:
        result = await confirm(session_factory, session_id=session_id, booking_id=booking_id)
    except (SessionNotFound, BookingNotFound) as exc:
        # acknowledged: redelivery cannot make the booking appear
        logger.warning("Payment event %s for unknown booking (session=%s, booking=%s): %s", event.event_id, session_id, booking_id, exc.code)
        await mark_event_processed(provider, event.event_id)
        return WebhookAck(received=True, event_type=event.type)

    await mark_event_processed(provider, event.event_id)
    if result.transitioned:
        PAYMENT_SUCCESS.labels(provider=provider).inc()
    return WebhookAck(received=True, event_type=event.type, booking_id=result.booking_id, duplicate=not result.transitioned)
