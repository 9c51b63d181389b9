"""
Pytest fixtures: a throwaway SQLite database per test, fake Redis, recording
collaborators and an HTTP client bound to the app.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("PAYMENT_PROVIDER", "simulated")
os.environ.setdefault("SIMULATED_WEBHOOK_SECRET", "test-simulated-secret")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("NOTIFICATION_PROVIDER", "log")

import hashlib
import hmac
import json
from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import app.services.confirmation as confirmation_module
import app.services.payment_gateway as payment_gateway
from app.config import settings
from app.db.base import Base
from app.db.session import get_session, get_session_factory
from app.main import app
from app.models.models import Booking, PaymentLink, Show, User
from app.services.auth import create_access_token
from app.services.clock import utcnow
from app.services.notification_providers import NotificationProvider
from app.services.notification_service import NotificationService
from app.services.payment_gateway import PaymentError, SimulatedAdapter, get_payment_adapter
from app.services.scheduler import HoldScheduler, get_scheduler


class RecordingScheduler(HoldScheduler):
    def __init__(self):
        self.scheduled = []

    def schedule_booking_expiry(self, booking_id, run_at):
        self.scheduled.append((booking_id, run_at))


class RecordingAdapter(SimulatedAdapter):
    """Simulated gateway that remembers checkout requests and can be told to fail."""

    def __init__(self):
        self.sessions = []
        self.fail = False

    async def create_checkout_session(self, amount, title, success_url, cancel_url, metadata):
        if self.fail:
            raise PaymentError("gateway down")
        session = await super().create_checkout_session(amount, title, success_url, cancel_url, metadata)
        self.sessions.append({"session": session, "amount": amount, "title": title, "success_url": success_url, "cancel_url": cancel_url, "metadata": metadata})
        return session


class RecordingProvider(NotificationProvider):
    def __init__(self):
        self.sent = []
        self.fail = False

    async def send_email(self, to, subject, body, attachments=None, meta=None):
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append({"to": to, "subject": subject, "body": body, "attachments": attachments or [], "meta": meta})
        return {"status": "sent", "provider": "recording"}


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh file-backed SQLite database with all tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield factory
    await engine.dispose()


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def adapter() -> RecordingAdapter:
    return RecordingAdapter()


@pytest.fixture
def mailer():
    return RecordingProvider()


@pytest.fixture
def notifier(mailer) -> NotificationService:
    return NotificationService(provider=mailer)


@pytest_asyncio.fixture
async def fake_redis(monkeypatch):
    r = fakeredis.FakeAsyncRedis(decode_responses=True)
    monkeypatch.setattr(payment_gateway, "redis_client", r)
    yield r
    await r.flushall()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, scheduler, adapter, notifier, fake_redis, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with database, gateway, scheduler and mailer overridden."""

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_payment_adapter] = lambda: adapter
    app.dependency_overrides[get_scheduler] = lambda: scheduler
    monkeypatch.setattr(confirmation_module, "notification_service", notifier)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _add(session_factory, obj):
    async with session_factory() as db, db.begin():
        db.add(obj)
    return obj


@pytest_asyncio.fixture
async def alice(session_factory) -> User:
    return await _add(session_factory, User(id="user_alice", email="alice@example.com", name="Alice"))


@pytest_asyncio.fixture
async def bob(session_factory) -> User:
    return await _add(session_factory, User(id="user_bob", email="bob@example.com", name="Bob"))


@pytest_asyncio.fixture
async def admin(session_factory) -> User:
    return await _add(session_factory, User(id="user_admin", email="admin@example.com", name="Admin", role="Admin"))


@pytest_asyncio.fixture
async def show(session_factory) -> Show:
    return await _add(
        session_factory,
        Show(movie_id="mv_1", movie_title="The Long Take", start_time=utcnow() + timedelta(days=2), price=Decimal("12.50")),
    )


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def signed_webhook(payload: dict, secret: str = None):
    """Body and headers for a simulated-provider webhook."""
    body = json.dumps(payload).encode("utf-8")
    sig = hmac.new((secret or settings.SIMULATED_WEBHOOK_SECRET).encode(), body, hashlib.sha256).hexdigest()
    return body, {"x-signature": sig, "content-type": "application/json"}


def checkout_completed(event_id: str, session_id: str, booking_id=None) -> dict:
    metadata = {"booking_id": str(booking_id)} if booking_id is not None else {}
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {"object": {"id": session_id, "metadata": metadata, "payment_intent": "pi_" + event_id}},
    }


async def make_overdue(session_factory, booking_id: int):
    """Move a pending booking's hold into the past."""
    async with session_factory() as db, db.begin():
        await db.execute(sa_update(Booking).where(Booking.id == booking_id).values(expires_at=utcnow() - timedelta(seconds=1)))


async def make_link_overdue(session_factory, link_id: str):
    async with session_factory() as db, db.begin():
        await db.execute(sa_update(PaymentLink).where(PaymentLink.id == link_id).values(expires_at=utcnow() - timedelta(seconds=1)))
