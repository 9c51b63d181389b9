from jinja2 import Environment, FileSystemLoader, select_autoescape
from pathlib import Path
from typing import Dict, List, Optional
from app.services.notification_providers import NotificationProvider, provider_from_settings
from app.services.tickets import booking_ics
from prometheus_client import Counter
import logging

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "notifications" / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml", "txt"]),
)

# metrics
NOTIF_COUNTER_SENT = Counter("cinema_notifications_sent_total", "Total notifications sent", ["channel", "provider"])
NOTIF_COUNTER_FAILED = Counter("cinema_notifications_failed_total", "Total notification failures", ["channel", "provider"])


class NotificationService:
    def __init__(self, provider: Optional[NotificationProvider] = None):
        self.provider = provider or provider_from_settings()

    def render(self, template_name: str, locale: str = "en", context: Dict = None) -> str:
        ctx = context or {}
        # try locale-specific template, fallback to en
        tpl_candidates = [f"{locale}/{template_name}", f"en/{template_name}"]
        return _env.select_template(tpl_candidates).render(**ctx)

    async def send_email(self, to: str, subject: str, template_name: str, context: Dict = None, locale: str = "en", attachments: List[Dict] = None, meta: Dict = None):
        body = self.render(template_name, locale=locale, context=context)
        provider_name = self.provider.__class__.__name__
        try:
            res = await self.provider.send_email(to=to, subject=subject, body=body, attachments=attachments, meta=meta)
        except Exception:
            NOTIF_COUNTER_FAILED.labels(channel="email", provider=provider_name).inc()
            logger.exception("Email send failed")
            raise
        NOTIF_COUNTER_SENT.labels(channel="email", provider=provider_name).inc()
        return res

    async def send_booking_confirmation(self, booking):
        """Booking must have ``show`` and ``user`` loaded."""
        show = booking.show
        context = {
            "name": booking.user.name or booking.user.email,
            "movie_title": show.movie_title,
            "show_date": show.start_time.strftime("%A %d %B %Y"),
            "show_time": show.start_time.strftime("%H:%M UTC"),
            "seats": ", ".join(booking.seats),
            "amount": booking.amount,
            "booking_id": booking.id,
        }
        attachments = [{"filename": "ticket.ics", "content": booking_ics(booking), "content_type": "text/calendar; charset=utf-8; method=PUBLISH"}]
        return await self.send_email(
            to=booking.user.email,
            subject=f'Payment Confirmation: "{show.movie_title}" booked!',
            template_name="booking_confirmed.html",
            context=context,
            attachments=attachments,
            meta={"booking_id": booking.id},
        )


notification_service = NotificationService()
