import base64
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

BREVO_EMAIL_URL = "https://api.brevo.com/v3/smtp/email"


class NotificationProvider(ABC):
    """Abstract provider for email notifications.

    ``attachments`` are dicts with ``filename``, ``content`` (str) and ``content_type``.
    """

    @abstractmethod
    async def send_email(self, to: str, subject: str, body: str, attachments: Optional[List[Dict]] = None, meta: Optional[Dict] = None) -> Dict:
        raise NotImplementedError()


class LogProvider(NotificationProvider):
    """Simple provider that logs messages (useful for dev/testing)."""

    async def send_email(self, to: str, subject: str, body: str, attachments: Optional[List[Dict]] = None, meta: Optional[Dict] = None) -> Dict:
        logger.info("[LogProvider] Sending email to %s subject=%s attachments=%s", to, subject, [a["filename"] for a in attachments or []])
        logger.debug("Email body: %s", body)
        return {"status": "sent", "provider": "log"}


class BrevoProvider(NotificationProvider):
    """Transactional email through the Brevo HTTP API."""

    def __init__(self, api_key: Optional[str] = None, timeout: float = 15.0):
        self.api_key = api_key or settings.BREVO_API_KEY
        self.timeout = timeout

    async def send_email(self, to: str, subject: str, body: str, attachments: Optional[List[Dict]] = None, meta: Optional[Dict] = None) -> Dict:
        payload = {
            "sender": {"email": settings.SENDER_EMAIL, "name": settings.SENDER_NAME},
            "to": [{"email": to}],
            "subject": subject,
            "htmlContent": body,
        }
        if attachments:
            payload["attachment"] = [
                {"name": a["filename"], "content": base64.b64encode(a["content"].encode("utf-8")).decode("ascii")}
                for a in attachments
            ]
        headers = {"api-key": self.api_key, "accept": "application/json", "content-type": "application/json"}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(BREVO_EMAIL_URL, json=payload, headers=headers)
            resp.raise_for_status()
            data = resp.json()
        return {"status": "sent", "provider": "brevo", "message_id": data.get("messageId")}


def provider_from_settings() -> NotificationProvider:
    if settings.NOTIFICATION_PROVIDER == "brevo":
        return BrevoProvider()
    return LogProvider()
